import argparse
import json
import logging
import sys

from dotenv import load_dotenv

from classes.app_config import AppConfig
from classes.backend import Backend
from classes.model_props import AI_PROVIDERS, MODEL_MODES

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s\n%(message)s\n",
)

logger = logging.getLogger("spotmatik_backend")


def _read_text(path):
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spotmatik",
        description="Analyze a ThoughtSpot TML model and recommend Spotter optimizations.",
    )
    parser.add_argument("tml_file", help="TML file to analyze")
    parser.add_argument("--provider", default="openai", choices=sorted(AI_PROVIDERS.values()))
    parser.add_argument("--mode", default="standard", choices=list(MODEL_MODES.values()))
    parser.add_argument("--questions", help="optional business questions file")
    parser.add_argument("--structure-only", action="store_true", help="only print the extracted columns/formulas")
    parser.add_argument("--markdown", help="also write a Markdown report to this path")
    parser.add_argument("--docx", help="also write a Word report to this path")
    parser.add_argument("-o", "--output", help="write the JSON result here instead of stdout")
    return parser


def main(argv=None) -> int:
    load_dotenv()
    args = build_arg_parser().parse_args(argv)
    backend = Backend(AppConfig.from_env(dotenv=False))

    payload = {"tml_content": _read_text(args.tml_file)}
    if args.structure_only:
        response = backend._process_request_data({"type": "parse_tml", "payload": payload})
    else:
        payload.update(provider=args.provider, mode=args.mode)
        if args.questions:
            payload["business_questions"] = _read_text(args.questions)
        try:
            response = backend._process_request_data({"type": "analyze", "payload": payload})
        except Exception as e:
            logger.error(f"Analysis failed: {e}")
            return 1

    result = response.get("data")
    text = json.dumps(result, indent=2, ensure_ascii=False)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(text)
    else:
        print(text)

    if not args.structure_only:
        if args.markdown:
            md = backend._process_request_data({"type": "report_markdown", "payload": {"results": result}})["data"]
            with open(args.markdown, "w", encoding="utf-8") as f:
                f.write(md)
        if args.docx:
            with open(args.docx, "wb") as f:
                f.write(backend._process_request_data({"type": "report_docx", "payload": {"results": result}})["data"])

    return 0


if __name__ == "__main__":
    sys.exit(main())
