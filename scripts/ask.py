import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from rules_qa.agents.base import AgentControlledError
from rules_qa.agents.rules_agent import RulesAgent
from rules_qa.observability.logger import setup_logging


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ask a question about the water-polo rules.")
    parser.add_argument("text", help="Question (or search terms with --search).")
    parser.add_argument("--search", action="store_true", help="Run a plain keyword search instead.")
    parser.add_argument("--limit", type=int, default=None, help="maxContext / maxResults override.")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    setup_logging()
    agent = RulesAgent()
    try:
        if args.search:
            page = agent.search(args.text, args.limit)
            payload = {
                "query": args.text,
                "total": page.total,
                "results": [
                    {
                        "article": hit.document.article,
                        "title": hit.document.title,
                        "score": hit.score,
                        "highlight": hit.highlight,
                    }
                    for hit in page.hits
                ],
            }
        else:
            result = agent.ask(args.text, args.limit)
            payload = {
                "question": result.question,
                "answer": result.answer,
                "references": [asdict(reference) for reference in result.references],
                "mode": result.mode.value,
            }
    except AgentControlledError as exc:
        print(json.dumps({"error": exc.error, "details": exc.details}, ensure_ascii=False), file=sys.stderr)
        return 1

    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
