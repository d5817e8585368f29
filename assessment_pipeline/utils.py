import os
import json
import logging
import datetime
from logging.handlers import RotatingFileHandler
from typing import Tuple, Dict, Any, List
from config import settings


# -------- logging setup --------

def setup_logger(name, level_str=settings.LOG_LEVEL):
    """
    Sets up a module logger with a console stream handler.
    IMPORTANT: propagation is ON so messages also flow to the root,
    where the per-run file handler is attached.
    """
    log_level = getattr(logging, str(level_str).upper(), logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(levelname)5s | %(name)s | %(message)s')

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Avoid duplicate console handlers on repeated imports
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        logger.addHandler(handler)

    logger.propagate = True
    return logger


logger = setup_logger(__name__)


# -------- file logger for full run --------

def _ensure_logs_dir() -> str:
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    return settings.LOG_DIR


def _make_run_log_path() -> str:
    return os.path.join(_ensure_logs_dir(), f"run_{make_timestamp()}.log")


def get_run_logger_and_path() -> Tuple[logging.Logger, str]:
    """
    Ensure a dedicated file handler is attached to the ROOT logger for this run,
    and return (root_logger, file_path). If already attached, reuse the same file.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for h in root.handlers:
        if getattr(h, "_is_pipeline_file", False) and isinstance(h, logging.FileHandler):
            return root, h.baseFilename

    log_path = _make_run_log_path()
    fh = RotatingFileHandler(
        log_path, maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8"
    )
    fh.setFormatter(logging.Formatter('%(asctime)s | %(levelname)5s | %(name)s | %(message)s'))
    fh.setLevel(logging.DEBUG)
    fh._is_pipeline_file = True  # mark so we can detect/reuse later
    root.addHandler(fh)

    return root, log_path


# -------- small text helpers --------

def truncate(text: str, limit: int = 120, ellipsis: str = "…") -> str:
    """Shorten text to 'limit' characters with a tidy word boundary if possible."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    cut = text[:limit].rsplit(" ", 1)[0]
    return (cut if cut else text[:limit]) + ellipsis


def make_timestamp() -> str:
    """Timestamp safe for filenames."""
    return datetime.datetime.now().strftime("%Y%m%d-%H%M%S")


def normalize_title(text: str) -> str:
    """Case/whitespace-insensitive key used to match titles echoed back by the model."""
    return " ".join(str(text or "").split()).casefold()


# -------- file IO helpers --------

def save_text_file(text: str, file_path: str) -> None:
    """Writes text to a file, creating directories if they don't exist."""
    os.makedirs(os.path.dirname(file_path) or ".", exist_ok=True)
    with open(file_path, "w", encoding="utf-8", newline="") as f:
        f.write(text)
    logger.info("Saved %s", file_path)


def save_json_file(data, file_path):
    """Saves data to a JSON file, creating directories if they don't exist."""
    try:
        os.makedirs(os.path.dirname(file_path) or ".", exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        logger.info(f"Data successfully saved to {file_path}")
    except Exception as e:
        logger.error(f"Error saving JSON to file {file_path}: {e}")


# -------- run report helpers --------

def start_run_report() -> Dict[str, Any]:
    """Initialize the run report dict and capture the run log file path."""
    _, log_file = get_run_logger_and_path()
    return {
        "started_at": make_timestamp(),
        "log_file": log_file,
        "files": [],
        "parts": [],
        "totals": {
            "chapters": 0,
            "parts_attempted": 0,
            "parts_completed": 0,
            "questions": 0,
        },
        "failures": [],  # list of {"stage": str, "reason": str}
    }


def append_failure(run_report: Dict[str, Any], stage: str, reason: str) -> None:
    run_report.setdefault("failures", []).append({"stage": str(stage), "reason": truncate(reason, 140)})


def save_run_report(run_report: Dict[str, Any], report_dir: str) -> str:
    """
    Persist the structured run report and log a concise summary.
    Also logs a one-line Failures summary if any exist.
    """
    stamp = run_report.get("started_at") or make_timestamp()
    report_path = os.path.join(report_dir, f"run_report_{stamp}.json")
    save_json_file(run_report, report_path)

    totals = run_report.get("totals", {})
    logger.info(
        "SUMMARY — Chapters=%s | PartsAttempted=%s | PartsCompleted=%s | Questions=%s",
        totals.get("chapters", 0),
        totals.get("parts_attempted", 0),
        totals.get("parts_completed", 0),
        totals.get("questions", 0),
    )

    failed: List[str] = [f"{f.get('stage')} — {f.get('reason')}" for f in run_report.get("failures", [])]
    if failed:
        logger.warning("Failures: %s", "; ".join(failed))

    return report_path
