"""Offer AI fixes for unresolved symbols in a Java file and apply them.

Usage:
  .venv/bin/python -m scripts.fix_file src/Main.java
  .venv/bin/python -m scripts.fix_file src/Main.java --dry-run
"""

from __future__ import annotations

from argparse import ArgumentParser
from pathlib import Path

from core.llm_factory import get_chat_model
from core.obs import JsonRepoLogger, JsonStdoutLogger
from editor.document import SourceDocument
from hints.fix_worker import FixOrchestrator
from hints.variable_fix import RepairOutcome, VariableFixAgent


def main() -> int:
    p = ArgumentParser(description="Fix unresolved symbols in variable declarations using an LLM.")
    p.add_argument("path", type=Path, help="Java source file")
    p.add_argument("--dry-run", action="store_true", help="Print the fixed source instead of writing it")
    p.add_argument("--timeout", type=float, default=120.0, help="Seconds to wait for each fix")
    p.add_argument("--log-file", type=Path, help="Path to append structured logs (JSON lines)")
    args = p.parse_args()

    if args.log_file:
        logger = JsonStdoutLogger(service="scripts", log_path=args.log_file)
    else:
        logger = JsonRepoLogger(service="scripts", filename="fix_file.log")

    document = SourceDocument.from_path(args.path)
    agent = VariableFixAgent(model_factory=lambda: get_chat_model(logger=logger), obs=logger)

    applied = 0
    with FixOrchestrator(agent=agent) as orchestrator:
        fixes = orchestrator.offer_fixes(document)
        if not fixes:
            print(f"{args.path}: nothing to fix")
            return 0
        for fix in fixes:
            print(f"- {fix.text()}: {fix.compilation_error}")
        # Each applied fix bumps the version, so re-offer after every commit.
        while fixes:
            fix = fixes[0]
            try:
                outcome = orchestrator.invoke(fix, document).result(timeout=args.timeout)
            except Exception as exc:  # already reported by the notifier
                print(f"  failed: {fix.text()} ({exc})")
                fixes = fixes[1:]
                continue
            print(f"  {fix.text()}: {outcome.value}")
            if outcome is RepairOutcome.APPLIED:
                applied += 1
                remaining = {f.action_title_param for f in fixes[1:]}
                fixes = [f for f in orchestrator.offer_fixes(document) if f.action_title_param in remaining]
            else:
                fixes = fixes[1:]

    if args.dry_run:
        print(document.text)
    elif applied:
        document.save(args.path)
        print(f"{args.path}: applied {applied} fix(es)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
