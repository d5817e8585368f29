# assessment_pipeline/main_pipeline.py
import os
import sys
import argparse
import mimetypes
from typing import List, Optional, Sequence

from config import settings
from . import utils
from . import exporters
from .constants import PART_COUNT
from .content_extraction import uploaded_file_from_bytes
from .session import PipelineSession, SessionStatus
from .schemas import UploadedFile

logger = utils.setup_logger(__name__)


def _guess_mime(path: str) -> str:
    mime, _ = mimetypes.guess_type(path)
    return mime or "application/octet-stream"


def load_files(paths: Sequence[str]) -> List[UploadedFile]:
    """Read textbook files from disk into UploadedFile records."""
    files = []
    for p in paths:
        with open(p, "rb") as f:
            data = f.read()
        if not data:
            logger.warning("Skipping empty file '%s'.", p)
            continue
        files.append(uploaded_file_from_bytes(os.path.basename(p), _guess_mime(p), data))
    return files


def run_pipeline(
    paths: Sequence[str],
    out_dir: Optional[str] = None,
    parts: int = PART_COUNT,
    session: Optional[PipelineSession] = None,
) -> int:
    """
    Analyse the files, generate up to `parts` batches, write exports and a run report.
    Returns a process exit code (0 when every attempted step succeeded).
    """
    out_dir = out_dir or os.path.join(settings.PROCESSED_DATA_DIR, f"assessment_{utils.make_timestamp()}")
    session = session or PipelineSession()
    run_report = utils.start_run_report()
    logger.info("Run log: %s", run_report["log_file"])

    files = load_files(paths)
    run_report["files"] = [f.name for f in files]
    if not files:
        logger.error("No readable input files.")
        utils.append_failure(run_report, "input", "no readable input files")
        utils.save_run_report(run_report, out_dir)
        return 1

    session.add_files(files)
    state = session.start_analysis()
    if state.status != SessionStatus.READY_TO_GENERATE:
        utils.append_failure(run_report, "analysis", state.error or "analysis failed")
        utils.save_run_report(run_report, out_dir)
        return 1

    run_report["totals"]["chapters"] = len(state.analysis.chapters)
    run_report["analysis"] = state.analysis.to_wire()

    exit_code = 0
    for _ in range(max(0, min(parts, PART_COUNT))):
        k = state.current_part_index
        run_report["totals"]["parts_attempted"] += 1
        state = session.generate_next_part()
        if state.error:
            utils.append_failure(run_report, f"part {k + 1}", state.error)
            exit_code = 1
            break
        run_report["totals"]["parts_completed"] += 1
        run_report["parts"].append({
            "index": k,
            "name": state.analysis.parts[k].name,
            "questions": len(state.mcqs_for_part(k)),
        })

    run_report["totals"]["questions"] = state.total_questions
    run_report["status"] = state.status.value
    for path in exporters.write_exports(state.mcqs, out_dir):
        logger.info("Export written: %s", path)
    utils.save_run_report(run_report, out_dir)
    return exit_code


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Turn a textbook (PDF / page images) into a 400-question MCQ assessment.")
    parser.add_argument("files", nargs="+", help="Textbook PDF(s) and/or page images, in reading order.")
    parser.add_argument("--out", default=None, help="Output folder (default: processed_data/assessment_<timestamp>).")
    parser.add_argument("--parts", type=int, default=PART_COUNT,
                        help=f"How many of the {PART_COUNT} parts to generate (default: all).")
    args = parser.parse_args(argv)
    return run_pipeline(args.files, out_dir=args.out, parts=args.parts)


if __name__ == '__main__':
    sys.exit(main())
