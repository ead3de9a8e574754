"""File-backed prompt template store.

Each template is a ``<name>.j2.md`` file in the prompts directory; the
directory itself is the index. PromptManager layers an mtime-validated
read cache over atomic create/update/delete file operations:

- add_prompt creates with O_CREAT|O_EXCL, so concurrent creators (in this
  process or another) cannot overwrite each other
- edit_prompt opens without O_CREAT, so it never creates a file
- every successful write or delete drops the cache entry, and every read
  compares the cached mtime with the live file before trusting the cache

Blocking filesystem calls and submission checks run via asyncio.to_thread;
rendering is delegated to the renderer, which runs on its own worker thread
under a deadline.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import re
import stat
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from promptvault.config.app import PromptVaultConfig
from promptvault.errors import (
    InvalidPromptNameError,
    PromptAlreadyExistsError,
    PromptError,
    PromptIOError,
    PromptNotFoundError,
    PromptPermissionError,
)
from promptvault.utils.locks import AsyncRWLock

from .defaults import load_default_prompts
from .frontmatter import parse_template
from .models import PromptTemplate
from .renderer import render_template
from .validation import validate_submission

__all__ = [
    "TEMPLATE_SUFFIX",
    "CachedTemplate",
    "PromptManager",
    "is_valid_prompt_name",
    "validate_prompt_name",
]

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".j2.md"

_VALID_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# Symlinked template files are never read or written through
_O_NOFOLLOW = getattr(os, "O_NOFOLLOW", 0)


def validate_prompt_name(name: str) -> None:
    """Validate a prompt name to prevent path traversal.

    Raises:
        InvalidPromptNameError: If the name is empty, contains a path
            separator or '..', or any character outside [A-Za-z0-9_-]
    """
    if not name:
        raise InvalidPromptNameError(name, "Name cannot be empty.")
    if "/" in name or "\\" in name or ".." in name:
        raise InvalidPromptNameError(name, "Path separators and '..' not allowed.")
    if not _VALID_NAME_PATTERN.match(name):
        raise InvalidPromptNameError(
            name, "Only alphanumeric characters, hyphens, and underscores allowed."
        )


def is_valid_prompt_name(name: str) -> bool:
    """Quick validation check for prompt names (used to filter directory listings)."""
    return bool(name) and _VALID_NAME_PATTERN.match(name) is not None


def _io_error(name: str, path: Path, action: str, error: OSError) -> PromptIOError:
    """Translate an OSError without a dedicated error kind into PromptIOError."""
    if isinstance(error, IsADirectoryError):
        message = f"'{name}' is a directory, not a prompt file. Remove or rename it."
    elif error.errno == errno.ELOOP:
        message = f"'{name}' is a symbolic link, not a prompt file. Replace it with a regular file."
    else:
        message = f"Failed to {action} prompt '{name}': {error}"
    return PromptIOError(message, name=name, path=path)


@dataclass
class CachedTemplate:
    """Cached template with the file modification time observed at load."""

    template: PromptTemplate
    file_mtime: int


class PromptManager:
    """Manages prompt templates stored as files in a single directory.

    One instance may be shared by any number of callers; its cache is the
    only in-memory mutable state and is guarded by a reader/writer lock.

    Usage:
        manager = PromptManager(config=load_config())
        await manager.init()
        await manager.add_prompt("greeting", content)
        text = await manager.render_prompt("greeting", {"name": "World"})
    """

    def __init__(
        self,
        config: PromptVaultConfig | None = None,
        prompts_dir: str | Path | None = None,
        defaults_dir: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        """Initialize the prompt manager.

        Args:
            config: Store configuration (defaults used when None)
            prompts_dir: Override for config.prompts_dir
            defaults_dir: Directory of bundled default templates (auto-detected)
            environ: Environment mapping exposed to templates (defaults to os.environ)
        """
        self.config = config or PromptVaultConfig()
        if prompts_dir:
            self.prompts_dir = Path(prompts_dir).expanduser()
        else:
            self.prompts_dir = self.config.get_prompts_dir()
        self.limits = self.config.limits
        self.env_policy = self.config.environment
        self._defaults_dir = defaults_dir
        self._environ = environ

        self._cache: dict[str, CachedTemplate] = {}
        self._cache_lock = AsyncRWLock()

    def prompt_path(self, name: str) -> Path:
        """Get the file path for a prompt name (name is validated)."""
        validate_prompt_name(name)
        return self.prompts_dir / f"{name}{TEMPLATE_SUFFIX}"

    # -- lifecycle -----------------------------------------------------------

    async def init(self) -> None:
        """Create the prompts directory and seed default templates on first run.

        Raises:
            PromptIOError: If the prompts directory cannot be created
        """
        try:
            await asyncio.to_thread(self.prompts_dir.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise PromptIOError(
                f"Failed to create prompts directory {self.prompts_dir}: {e}. "
                "Check that the parent directory exists and is writable.",
                path=self.prompts_dir,
            ) from e

        if not self.config.seed_defaults:
            return

        try:
            await self._initialize_default_prompts()
        except (PromptError, OSError) as e:
            # Users can still add prompts manually
            logger.warning(f"Failed to initialize default prompts: {e}")

    async def _initialize_default_prompts(self) -> None:
        defaults = await asyncio.to_thread(load_default_prompts, self._defaults_dir)
        if not defaults:
            return

        # If the first default exists, initialization already happened
        sentinel = self.prompts_dir / f"{defaults[0][0]}{TEMPLATE_SUFFIX}"
        if await asyncio.to_thread(os.path.lexists, sentinel):
            return

        written = 0
        for name, content in defaults:
            try:
                await self.add_prompt(name, content)
                written += 1
            except PromptAlreadyExistsError:
                logger.debug(f"Skipped default prompt '{name}' (already exists)")

        logger.info(f"Initialized {written} default prompts in {self.prompts_dir}")

    # -- reads ---------------------------------------------------------------

    def _scan_directory(self) -> list[str]:
        names: list[str] = []
        with os.scandir(self.prompts_dir) as entries:
            for entry in entries:
                try:
                    # Reject symlinks and directories
                    if not entry.is_file(follow_symlinks=False):
                        logger.debug(f"Skipping non-file entry: {entry.path}")
                        continue
                except OSError as e:
                    logger.warning(f"Failed to get file type for {entry.path}: {e}")
                    continue

                if not entry.name.endswith(TEMPLATE_SUFFIX):
                    continue

                stem = entry.name[: -len(TEMPLATE_SUFFIX)]
                if not is_valid_prompt_name(stem):
                    logger.warning(f"Invalid prompt filename (skipping): {entry.name}")
                    continue
                names.append(stem)
        return names

    async def list_prompts(self, category: str | None = None) -> list[PromptTemplate]:
        """List all loadable prompts.

        Entries that fail to load are logged and skipped. Results follow
        directory enumeration order, which is platform dependent.

        Args:
            category: Only return prompts carrying this category

        Returns:
            List of PromptTemplate

        Raises:
            PromptIOError: If the prompts directory cannot be read
        """
        try:
            names = await asyncio.to_thread(self._scan_directory)
        except OSError as e:
            raise PromptIOError(
                f"Failed to read prompts directory {self.prompts_dir}: {e}",
                path=self.prompts_dir,
            ) from e

        prompts: list[PromptTemplate] = []
        for name in names:
            try:
                template = await self.load_prompt(name)
            except PromptError as e:
                logger.warning(f"Failed to load prompt '{name}': {e}")
                continue
            if category is None or category in template.metadata.categories:
                prompts.append(template)

        return prompts

    async def list_categories(self) -> dict[str, int]:
        """Count prompts per category across all loadable prompts."""
        counts: Counter[str] = Counter()
        for template in await self.list_prompts():
            # A prompt listing the same category twice counts once
            counts.update(set(template.metadata.categories))
        return dict(sorted(counts.items()))

    async def exists(self, name: str) -> bool:
        """Check whether a prompt file exists (regular files only)."""
        path = self.prompt_path(name)
        try:
            st = await asyncio.to_thread(os.lstat, path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise _io_error(name, path, "check", e) from e
        return stat.S_ISREG(st.st_mode)

    def _read_prompt_file(self, path: Path) -> tuple[str, int]:
        fd = os.open(path, os.O_RDONLY | _O_NOFOLLOW)
        try:
            # mtime is taken before reading, so a concurrent write leaves the entry stale
            st = os.fstat(fd)
            if stat.S_ISDIR(st.st_mode):
                raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), str(path))
            f = os.fdopen(fd, encoding="utf-8", newline="")
        except BaseException:
            os.close(fd)
            raise
        with f:
            return f.read(), st.st_mtime_ns

    async def _current_mtime(self, path: Path) -> int | None:
        try:
            return (await asyncio.to_thread(os.lstat, path)).st_mtime_ns
        except OSError:
            return None

    async def load_prompt(self, name: str) -> PromptTemplate:
        """Load a prompt by name, using the cache while the file is unchanged.

        Args:
            name: Prompt name

        Returns:
            A copy of the parsed PromptTemplate

        Raises:
            InvalidPromptNameError: Name fails validation
            PromptNotFoundError: No such prompt file
            ParseError: File content is not a valid template
            PromptPermissionError: File cannot be read
            PromptIOError: Any other filesystem failure
        """
        path = self.prompt_path(name)

        async with self._cache_lock.read():
            cached = self._cache.get(name)
            if cached is not None:
                current_mtime = await self._current_mtime(path)
                if current_mtime is not None and current_mtime == cached.file_mtime:
                    logger.debug(f"Prompt cache hit: {name}")
                    return cached.template.model_copy(deep=True)
                logger.debug(f"Prompt cache stale: {name}")

        try:
            content, file_mtime = await asyncio.to_thread(self._read_prompt_file, path)
        except FileNotFoundError as e:
            await self._invalidate_cache(name)
            raise PromptNotFoundError(name, "Use add_prompt to create it.") from e
        except PermissionError as e:
            raise PromptPermissionError(name, "read", path) from e
        except UnicodeDecodeError as e:
            raise PromptIOError(
                f"Prompt '{name}' is not valid UTF-8 text: {e}. Re-save the file as UTF-8.",
                name=name,
                path=path,
            ) from e
        except OSError as e:
            raise _io_error(name, path, "read", e) from e

        template = parse_template(name, content)

        async with self._cache_lock.write():
            self._cache[name] = CachedTemplate(template=template, file_mtime=file_mtime)

        return template.model_copy(deep=True)

    # -- writes --------------------------------------------------------------

    def _validate_content(self, name: str, content: str) -> None:
        try:
            validate_submission(content, max_size=self.limits.max_template_size)
        except PromptError as e:
            e.name = name
            raise

    def _find_case_conflict(self, name: str) -> str | None:
        lowered = name.lower()
        try:
            existing = self._scan_directory()
        except FileNotFoundError:
            return None
        for stem in existing:
            if stem != name and stem.lower() == lowered:
                return stem
        return None

    @staticmethod
    def _create_file(path: Path, content: str) -> None:
        # Atomic create-new: fails with FileExistsError if the file exists
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
        except BaseException:
            # Do not leave a half-written file behind for the next creator
            path.unlink(missing_ok=True)
            raise

    @staticmethod
    def _rewrite_file(path: Path, content: str) -> None:
        # No O_CREAT: fails with FileNotFoundError if the file is absent
        fd = os.open(path, os.O_WRONLY | os.O_TRUNC | _O_NOFOLLOW)
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

    async def add_prompt(self, name: str, content: str) -> None:
        """Create a new prompt file.

        Raises:
            InvalidPromptNameError: Name fails validation
            SizeLimitExceededError, ParseError, PromptSyntaxError,
            SecurityViolationError: Content rejected before writing
            PromptAlreadyExistsError: A prompt with this name already exists
            PromptPermissionError: Directory not writable
            PromptIOError: Any other filesystem failure
        """
        path = self.prompt_path(name)
        await asyncio.to_thread(self._validate_content, name, content)

        try:
            conflict = await asyncio.to_thread(self._find_case_conflict, name)
        except OSError as e:
            raise _io_error(name, path, "create", e) from e
        if conflict:
            raise PromptAlreadyExistsError(name, existing=conflict)

        try:
            await asyncio.to_thread(self._create_file, path, content)
        except FileExistsError as e:
            raise PromptAlreadyExistsError(name) from e
        except PermissionError as e:
            raise PromptPermissionError(name, "create", path) from e
        except OSError as e:
            raise _io_error(name, path, "create", e) from e

        await self._invalidate_cache(name)
        logger.info(f"Created prompt '{name}' at {path}")

    async def edit_prompt(self, name: str, content: str) -> None:
        """Replace the content of an existing prompt file.

        Raises:
            InvalidPromptNameError: Name fails validation
            SizeLimitExceededError, ParseError, PromptSyntaxError,
            SecurityViolationError: Content rejected before writing
            PromptNotFoundError: No prompt with this name exists
            PromptPermissionError: File not writable
            PromptIOError: Any other filesystem failure
        """
        path = self.prompt_path(name)
        await asyncio.to_thread(self._validate_content, name, content)

        try:
            await asyncio.to_thread(self._rewrite_file, path, content)
        except FileNotFoundError as e:
            raise PromptNotFoundError(name, "Use add_prompt to create.") from e
        except PermissionError as e:
            raise PromptPermissionError(name, "update", path) from e
        except OSError as e:
            raise _io_error(name, path, "update", e) from e
        finally:
            await self._invalidate_cache(name)

        logger.info(f"Updated prompt '{name}'")

    async def delete_prompt(self, name: str) -> None:
        """Delete a prompt file.

        Raises:
            InvalidPromptNameError: Name fails validation
            PromptNotFoundError: No prompt with this name exists
            PromptPermissionError: The OS refused the removal
            PromptIOError: Any other filesystem failure
        """
        path = self.prompt_path(name)

        try:
            await asyncio.to_thread(os.remove, path)
        except FileNotFoundError as e:
            await self._invalidate_cache(name)
            raise PromptNotFoundError(name) from e
        except PermissionError as e:
            raise PromptPermissionError(name, "delete", path) from e
        except OSError as e:
            raise _io_error(name, path, "delete", e) from e

        await self._invalidate_cache(name)
        logger.info(f"Deleted prompt '{name}'")

    # -- rendering -----------------------------------------------------------

    async def render_prompt(self, name: str, parameters: Mapping[str, Any] | None = None) -> str:
        """Load a prompt and render it with parameters and the filtered environment."""
        template = await self.load_prompt(name)
        return await render_template(
            template,
            parameters,
            limits=self.limits,
            env_policy=self.env_policy,
            environ=self._environ,
        )

    # -- cache ---------------------------------------------------------------

    async def _invalidate_cache(self, name: str) -> None:
        async with self._cache_lock.write():
            self._cache.pop(name, None)

    async def clear_cache(self) -> None:
        """Drop every cached template."""
        async with self._cache_lock.write():
            self._cache.clear()
