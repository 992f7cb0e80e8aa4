"""Import matcher - turns a finished download into library files.

Per file:
    1. skip non-media files and samples
    2. re-parse the file name (fall back to the release title for single-file
       downloads with meaningless names like "abc123.mkv")
    3. find the target it belongs to (the grabbed target first, then any
       library target the release could be for - season packs!)
    4. re-check quality and upgrade rules with the quality the FILE has
    5. place it via the file organizer and record the new current file

Files that can't be matched or placed are reported as manual imports. The
item's import failed only when NOTHING was imported.
"""

import logging
import posixpath
from collections.abc import Callable
from dataclasses import dataclass, field

from fetcharr.application.services.decision_engine import check_upgrade
from fetcharr.application.services.target_matcher import TargetMatcher
from fetcharr.config import ImportSettings
from fetcharr.domain.entities import AcquisitionTarget, CurrentFile, ProfileCatalog, QueueItem
from fetcharr.domain.exceptions import FilePlacementError
from fetcharr.domain.ports import DownloadedFile, IFileOrganizer, ILibraryStore
from fetcharr.domain.value_objects.release_parser import ParsedRelease, parse_release

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


@dataclass(frozen=True)
class ImportedFile:
    source_path: str
    final_path: str
    target_key: str
    tier: str


@dataclass(frozen=True)
class ManualImport:
    """A file a human has to look at."""

    path: str
    reason: str


@dataclass(frozen=True)
class ImportResult:
    imported: tuple[ImportedFile, ...] = ()
    manual_required: tuple[ManualImport, ...] = ()
    skipped: tuple[str, ...] = ()
    stopped_early: bool = False

    @property
    def succeeded(self) -> bool:
        return bool(self.imported)

    @property
    def failure_summary(self) -> str:
        if not self.manual_required:
            return "no importable media files"
        return "; ".join(f"{posixpath.basename(m.path)}: {m.reason}" for m in self.manual_required)


@dataclass
class _Progress:
    imported: list[ImportedFile] = field(default_factory=list)
    manual: list[ManualImport] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class ImportMatcher:
    def __init__(
        self,
        organizer: IFileOrganizer,
        library: ILibraryStore,
        settings: ImportSettings,
    ) -> None:
        self._organizer = organizer
        self._library = library
        self._settings = settings
        self._matcher = TargetMatcher(settings.title_similarity_threshold)
        self._extensions = frozenset(settings.media_extensions)

    def is_media(self, path: str) -> bool:
        return posixpath.splitext(path)[1].lower() in self._extensions

    def is_sample(self, downloaded: DownloadedFile) -> bool:
        stem = posixpath.splitext(posixpath.basename(downloaded.path))[0].lower()
        looks_like_sample = stem == "sample" or "sample" in stem.replace(".", "-").split("-")
        return looks_like_sample and downloaded.size < self._settings.sample_max_megabytes * _MB

    async def import_download(
        self,
        item: QueueItem,
        target: AcquisitionTarget,
        should_stop: Callable[[], bool] = lambda: False,
    ) -> ImportResult:
        """Import every usable file of a finished download.

        should_stop is checked BETWEEN files: a cancel never interrupts a
        placement that already started.
        """
        if not item.output_path:
            return ImportResult(manual_required=(ManualImport("", "download client reported no output path"),))

        files = sorted(await self._organizer.list_files(item.output_path), key=lambda f: f.path)
        media = []
        progress = _Progress()
        for downloaded in files:
            if not self.is_media(downloaded.path) or self.is_sample(downloaded):
                progress.skipped.append(downloaded.path)
            else:
                media.append(downloaded)

        catalog = await self._library.get_catalog()
        stopped = False
        for downloaded in media:
            if should_stop():
                stopped = True
                logger.info("Import of %s stopped on request", item.id)
                break
            await self._import_file(downloaded, item, target, catalog, len(media) == 1, progress)

        result = ImportResult(
            imported=tuple(progress.imported),
            manual_required=tuple(progress.manual),
            skipped=tuple(progress.skipped),
            stopped_early=stopped,
        )
        logger.info(
            "Import of '%s': %d imported, %d manual, %d skipped",
            item.candidate.title,
            len(result.imported),
            len(result.manual_required),
            len(result.skipped),
        )
        return result

    async def _import_file(
        self,
        downloaded: DownloadedFile,
        item: QueueItem,
        target: AcquisitionTarget,
        catalog: ProfileCatalog,
        single_file: bool,
        progress: _Progress,
    ) -> None:
        parsed = self._parse(downloaded, item, target, single_file)
        if parsed is None:
            progress.manual.append(ManualImport(downloaded.path, "unparseable file name"))
            return

        matched = await self._find_target(parsed, target)
        if matched is None:
            progress.manual.append(ManualImport(downloaded.path, "no matching library target"))
            return

        quality = downloaded.actual_quality or parsed.quality
        tier = catalog.definitions.resolve(quality).name
        profile = catalog.profile_for(matched)
        if not profile.allows(tier):
            progress.manual.append(ManualImport(downloaded.path, f"quality {tier} not wanted"))
            return
        reason = check_upgrade(catalog.definitions, profile, tier, matched)
        if reason is not None:
            progress.manual.append(ManualImport(downloaded.path, reason.value))
            return

        try:
            final_path = await self._organizer.place(downloaded.path, matched, quality)
        except FilePlacementError as e:
            logger.warning("Placing %s failed: %s", downloaded.path, e.message)
            progress.manual.append(ManualImport(downloaded.path, f"placement failed: {e.message}"))
            return

        await self._library.update_current_file(
            matched.key, CurrentFile(quality=quality, path=final_path)
        )
        progress.imported.append(
            ImportedFile(downloaded.path, final_path, matched.key.value, tier)
        )

    def _parse(
        self,
        downloaded: DownloadedFile,
        item: QueueItem,
        target: AcquisitionTarget,
        single_file: bool,
    ) -> ParsedRelease | None:
        parsed = parse_release(posixpath.basename(downloaded.path), kind_hint=target.content_kind)
        if parsed is None and single_file:
            return item.candidate.parsed
        return parsed

    async def _find_target(
        self, parsed: ParsedRelease, grabbed_for: AcquisitionTarget
    ) -> AcquisitionTarget | None:
        if self._matcher.matches(parsed, grabbed_for):
            return grabbed_for
        for candidate in await self._library.find_targets(parsed):
            if candidate.key != grabbed_for.key and self._matcher.matches(parsed, candidate):
                return candidate
        return None


__all__ = ["ImportMatcher", "ImportResult", "ImportedFile", "ManualImport"]
