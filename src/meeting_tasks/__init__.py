"""Turn meeting transcripts and recordings into a list of tasks."""

from .app import create_app
from .asr_client import BailianASRClient, WhisperTranscriber
from .audio import classify_media, extract_audio, normalize_media, split_audio
from .csv_export import export_tasks_csv, parse_tasks_csv
from .extractor import TaskExtractor
from .models import CandidateTask, NewTask, Task, validate_candidate
from .pipeline import PipelineResult, process_media, process_transcript
from .store import TaskStore

__all__ = [
    "BailianASRClient",
    "CandidateTask",
    "NewTask",
    "PipelineResult",
    "Task",
    "TaskExtractor",
    "TaskStore",
    "WhisperTranscriber",
    "classify_media",
    "create_app",
    "export_tasks_csv",
    "extract_audio",
    "normalize_media",
    "parse_tasks_csv",
    "process_media",
    "process_transcript",
    "split_audio",
    "validate_candidate",
]
