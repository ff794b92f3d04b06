import csv
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from .config import Settings
from .drive import DOCX_MIME, PDF_MIME, FileHandle, FolderHandle
from .errors import TransportError
from .extract import extract, is_temp_copy
from .gemini import select_model
from .results import Fatal, Moved, Skip

log = logging.getLogger(__name__)

LEDGER_HEADER = ["ts", "action", "file_id", "from", "to", "category", "folder_id", "model"]


def extension_for(mime_type: str, filename: str) -> str:
    """Extension kept on the organized name; derived from the original file."""
    if mime_type == PDF_MIME:
        return ".pdf"
    if mime_type == DOCX_MIME:
        return ".docx"
    if mime_type.startswith("image/"):
        last_dot = filename.rfind(".")
        if last_dot <= 0:
            return ""
        return filename[last_dot:]
    # Google Docs, text files, etc.
    return ""


def get_or_create_folder(store, parent_id: str, name: str) -> FolderHandle:
    folder = store.find_folder(parent_id, name)
    if folder is not None:
        return folder
    log.info(f'Creating folder: "{name}"...')
    return store.create_folder(parent_id, name)


class MoveLedger:
    """Append-only CSV of every decision, one row per file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def record(self, action: str, file: FileHandle, to: str = "", category: str = "",
               folder_id: str = "", model: str = "") -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            new_log = not self.path.exists()
            with self.path.open("a", newline="", encoding="utf-8") as logf:
                writer = csv.writer(logf)
                if new_log:
                    writer.writerow(LEDGER_HEADER)
                writer.writerow([int(time.time()), action, file.id, file.name, to, category, folder_id, model])
        except OSError as e:
            log.warning(f"Could not write ledger {self.path}: {e}")


@dataclass
class RunReport:
    found: int = 0
    moved: int = 0
    skipped: int = 0
    failed: int = 0
    remaining: int = 0
    aborted: bool = False


class Organizer:
    def __init__(
        self,
        store,
        ai,
        settings: Settings,
        *,
        ledger: Optional[MoveLedger] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.ai = ai
        self.settings = settings
        self.ledger = ledger
        self.sleep = sleep
        self.clock = clock

    def _record(self, action: str, file: FileHandle, **kwargs) -> None:
        if self.ledger is not None:
            self.ledger.record(action, file, **kwargs)

    def list_pending(self) -> List[FileHandle]:
        files = []
        for f in self.store.list_files(self.settings.source_folder_id):
            if is_temp_copy(f.name):
                log.warning(f'Ignoring leftover temp copy "{f.name}" (ID: {f.id})')
                continue
            files.append(f)
        return files

    def process_file(self, file: FileHandle, model: str) -> Moved | Skip:
        excerpt = extract(self.store, file)
        if isinstance(excerpt, Skip):
            return excerpt

        proposal = self.ai.analyze(excerpt, model)
        if isinstance(proposal, Skip):
            return proposal

        category = proposal.category.strip()
        if not category:
            return Skip("AI returned an empty category")
        new_name = f"{proposal.filename.strip()}{extension_for(file.mime_type, file.name)}"
        log.info(f'AI suggested name: "{new_name}"')

        if self.settings.dry_run:
            log.info(f'[DRYRUN] Would move "{file.name}" to "{category}" as "{new_name}"')
            return Moved(new_name=new_name, category=category, folder_id="")

        folder = get_or_create_folder(self.store, self.settings.destination_folder_id, category)
        log.info(f'AI suggested category: "{category}" (Folder ID: {folder.id})')

        # two separate mutations; an interrupted run leaves the file renamed
        # in the source folder and the next run processes it again
        self.store.rename(file.id, new_name)
        self.store.move(file.id, folder.id, file.parents or None)
        return Moved(new_name=new_name, category=category, folder_id=folder.id)

    def run(self) -> RunReport:
        report = RunReport()
        started = self.clock()

        log.info("Finding available AI models...")
        model = select_model(self.ai, self.settings.model)
        if isinstance(model, Fatal):
            log.error(f"FATAL ERROR: Could not find any working AI models: {model.error}")
            report.aborted = True
            return report
        log.info(f"Using Text Model: {model}")

        log.info("Checking for files in source folder...")
        try:
            files = self.list_pending()
        except TransportError as e:
            log.error(f"FATAL ERROR: {e}")
            report.aborted = True
            return report
        report.found = len(files)
        if not files:
            log.info("No files found in the source folder.")
            return report
        log.info(f"Found {len(files)} files in source folder. Starting analysis...")

        batch = files[: self.settings.limit] if self.settings.limit else files
        report.remaining = len(files) - len(batch)
        for index, file in enumerate(batch):
            if self.settings.time_budget and self.clock() - started >= self.settings.time_budget:
                log.info("Time budget exhausted; stopping before the next file.")
                report.remaining += len(batch) - index
                break

            log.info(f"--- Processing file: {file.name} (ID: {file.id}) ---")
            try:
                outcome = self.process_file(file, model)
            except Exception as e:
                log.exception(f"ERROR processing file {file.name}: {e}")
                report.failed += 1
                self._record("ERROR", file, to=f"{type(e).__name__}:{e}", model=model)
            else:
                if isinstance(outcome, Skip):
                    log.info(f'Skipping "{file.name}": {outcome.reason}')
                    report.skipped += 1
                    self._record("SKIP", file, to=outcome.reason, model=model)
                elif self.settings.dry_run:
                    self._record("DRYRUN", file, to=outcome.new_name, category=outcome.category, model=model)
                else:
                    log.info(f'SUCCESS: Moved "{file.name}" to "{outcome.category}" as "{outcome.new_name}"')
                    report.moved += 1
                    self._record("MOVE", file, to=outcome.new_name, category=outcome.category,
                                 folder_id=outcome.folder_id, model=model)

            if index < len(batch) - 1:
                self.sleep(self.settings.delay_seconds)

        if report.remaining:
            log.info(f"{report.remaining} files left for the next run.")
        log.info("--- Organizing process complete. ---")
        log.info(
            f"Moved {report.moved}, skipped {report.skipped}, failed {report.failed}, "
            f"remaining {report.remaining}."
        )
        return report
