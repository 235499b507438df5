import argparse
import dataclasses
import json
import mimetypes
import sys
from pathlib import Path

from meeting_tasks import TaskStore, create_app, export_tasks_csv, process_media, process_transcript
from meeting_tasks.audio import classify_media
from meeting_tasks.config import load_settings
from meeting_tasks.errors import MeetingTasksError
from meeting_tasks.logging_setup import setup_logging


def parse_args() -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="Extract tasks from a meeting transcript or recording.")
	parser.add_argument(
		"input",
		nargs="?",
		help="Path to a transcript text file, or an audio/video recording",
	)
	parser.add_argument("--csv", dest="csv_path", help="Also write the extracted tasks to this CSV file")
	parser.add_argument(
		"--transcription-backend",
		dest="transcription_backend",
		choices=("openai", "bailian"),
		help="Override the speech-to-text backend (defaults to MEETTASKS_TRANSCRIPTION_BACKEND)",
	)
	parser.add_argument("--serve", action="store_true", help="Start the HTTP API instead of processing a file")
	parser.add_argument("--verbose", action="store_true", help="Log debug output to stderr")
	return parser.parse_args()


def main() -> int:
	args = parse_args()
	settings = load_settings()
	if args.transcription_backend:
		settings = dataclasses.replace(settings, transcription_backend=args.transcription_backend)
	setup_logging(level="DEBUG" if args.verbose else settings.log_level, log_dir=settings.log_dir)

	if args.serve:
		app = create_app(settings)
		app.run(host=settings.host, port=settings.port, threaded=True)
		return 0

	if not args.input:
		print("error: an input file is required unless --serve is given", file=sys.stderr)
		return 2

	source = Path(args.input)
	if not source.exists():
		raise FileNotFoundError(f"Input file does not exist: {source}")

	store = TaskStore()
	try:
		mimetype, _ = mimetypes.guess_type(source.name)
		if classify_media(source.name, mimetype) is None:
			result = process_transcript(
				source.read_text(encoding="utf-8"),
				store=store,
				extractor_options=settings.extractor_options(),
			)
		else:
			result = process_media(
				source.read_bytes(),
				source.name,
				store=store,
				mimetype=mimetype,
				transcription_backend=settings.transcription_backend,
				transcriber_options=settings.transcriber_options(),
				extractor_options=settings.extractor_options(),
				max_chunk_bytes=settings.transcription_chunk_bytes,
			)
	except MeetingTasksError as exc:
		print(f"error: {exc}", file=sys.stderr)
		return 1

	if args.csv_path:
		Path(args.csv_path).write_text(export_tasks_csv(result.tasks) + "\n", encoding="utf-8")

	print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
	return 0


if __name__ == "__main__":
	sys.exit(main())
