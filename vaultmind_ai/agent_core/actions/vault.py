from __future__ import annotations

"""Built-in document-store actions.

Mutating actions require approval by default and return a ``Reversal`` so the
coordinator can record them in the conversation's ledger. Read-only actions
(``read_note``, ``search_notes``, ``analyze_vault``) need no approval and may
run concurrently with each other.
"""

import posixpath
import re
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, Field

from ..ledger import reversals
from ..schemas.base import BaseSchema
from ..schemas.domain import ActionCategory
from .base import ActionContext, ActionResult, ValidationResult
from .store import normalize_path


def _path_error(path: str) -> Optional[str]:
    try:
        normalize_path(path)
    except ValueError as exc:
        return str(exc)
    return None


def _markdown_warning(path: str) -> List[str]:
    return [] if path.endswith(".md") else ["file path should end with .md"]


# ----------------------------------------------------------------------------
# Argument models
# ----------------------------------------------------------------------------


class PathContentArgs(BaseSchema):
    path: str = Field(..., description='Note path, e.g. "Notes/My Note.md"')
    content: str = Field(..., description="Markdown content")


class AppendNoteArgs(PathContentArgs):
    newline: bool = Field(default=True, description="Add a newline before the appended content")


class LinePosition(BaseSchema):
    type: Literal["line"] = "line"
    line_number: int = Field(..., ge=1, description="1-based line number to insert at")


class HeadingPosition(BaseSchema):
    type: Literal["heading"] = "heading"
    heading: str = Field(..., description="Heading text to insert after")
    create_if_missing: bool = Field(default=False, description="Append the heading when it does not exist")


class PatternPosition(BaseSchema):
    type: Literal["pattern"] = "pattern"
    pattern: str = Field(..., description="Text to search for; content is inserted after the matching line")
    occurrence: int = Field(default=1, ge=1, description="Which occurrence to insert after")


class InsertTextArgs(PathContentArgs):
    position: Union[LinePosition, HeadingPosition, PatternPosition] = Field(..., discriminator="type")


class SearchReplaceArgs(BaseSchema):
    path: str
    search: str = Field(..., min_length=1)
    replace: str
    regex: bool = False
    case_sensitive: bool = True
    whole_word: bool = False
    replace_all: bool = True


class PathArgs(BaseSchema):
    path: str = Field(..., description="Vault-relative path")


class TransferArgs(BaseSchema):
    source_path: str = Field(..., description="Existing file path")
    destination_path: str = Field(..., description="New file path")


class SearchArgs(BaseSchema):
    query: str = Field(..., min_length=1, description="Text to look for in note paths and contents")
    limit: int = Field(default=10, ge=1, le=100)


class AnalyzeVaultArgs(BaseSchema):
    folder: Optional[str] = Field(default=None, description="Restrict the analysis to one folder")


# ----------------------------------------------------------------------------
# Mutating actions
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateNoteAction:
    """Create a new note. Fails when the path already exists."""

    name: str = "create_note"
    description: str = "Create a new note in the vault"
    category: ActionCategory = ActionCategory.vault
    requires_approval: bool = True
    parallel_safe: bool = False
    args_model: ClassVar[Type[BaseModel]] = PathContentArgs

    async def validate(self, ctx: ActionContext, args: PathContentArgs) -> ValidationResult:
        err = _path_error(args.path)
        if err:
            return ValidationResult.fail(f"path: {err}")
        if await ctx.store.exists(args.path):
            return ValidationResult.fail(f"path: {args.path} already exists")
        return ValidationResult.ok(_markdown_warning(args.path))

    async def execute(self, ctx: ActionContext, args: PathContentArgs) -> ActionResult:
        path = normalize_path(args.path)
        await ctx.store.create(path, args.content)
        return ActionResult(
            ok=True,
            output={"path": path, "message": f"Created {path}"},
            reversal=reversals.create_file(ctx.store, path, args.content),
        )


@dataclass(frozen=True)
class ModifyNoteAction:
    """Replace the whole content of an existing note."""

    name: str = "modify_note"
    description: str = "Replace the content of an existing note"
    category: ActionCategory = ActionCategory.vault
    requires_approval: bool = True
    parallel_safe: bool = False
    args_model: ClassVar[Type[BaseModel]] = PathContentArgs

    async def validate(self, ctx: ActionContext, args: PathContentArgs) -> ValidationResult:
        err = _path_error(args.path)
        if err:
            return ValidationResult.fail(f"path: {err}")
        if not await ctx.store.exists(args.path) or await ctx.store.is_folder(args.path):
            return ValidationResult.fail(f"path: note not found: {args.path}")
        return ValidationResult.ok()

    async def execute(self, ctx: ActionContext, args: PathContentArgs) -> ActionResult:
        path = normalize_path(args.path)
        old = await ctx.store.read(path)
        await ctx.store.modify(path, args.content)
        return ActionResult(
            ok=True,
            output={"path": path, "message": f"Modified {path}"},
            reversal=reversals.modify_file(ctx.store, path, old, args.content),
        )


class _EditNoteAction:
    """Shared validation for actions that edit an existing note in place."""

    async def validate(self, ctx: ActionContext, args: Any) -> ValidationResult:
        err = _path_error(args.path)
        if err:
            return ValidationResult.fail(f"path: {err}")
        if not await ctx.store.exists(args.path) or await ctx.store.is_folder(args.path):
            return ValidationResult.fail(f"path: note not found: {args.path}")
        return ValidationResult.ok(_markdown_warning(args.path))

    async def _write(self, ctx: ActionContext, path: str, old: str, new: str, message: str, **extra: Any) -> ActionResult:
        await ctx.store.modify(path, new)
        return ActionResult(
            ok=True,
            output={"path": path, "message": message, **extra},
            reversal=reversals.modify_file(ctx.store, path, old, new),
        )


@dataclass(frozen=True)
class AppendNoteAction(_EditNoteAction):
    name: str = "append_note"
    description: str = "Append content to the end of an existing note"
    category: ActionCategory = ActionCategory.vault
    requires_approval: bool = True
    parallel_safe: bool = False
    args_model: ClassVar[Type[BaseModel]] = AppendNoteArgs

    async def execute(self, ctx: ActionContext, args: AppendNoteArgs) -> ActionResult:
        path = normalize_path(args.path)
        old = await ctx.store.read(path)
        sep = "\n" if args.newline and old and not old.endswith("\n") else ""
        lines = len(args.content.split("\n"))
        return await self._write(
            ctx, path, old, old + sep + args.content, f"Appended {lines} line(s) to {path}", lines_added=lines
        )


@dataclass(frozen=True)
class InsertTextAction(_EditNoteAction):
    """Insert text at a line, after a heading, or after a matching line."""

    name: str = "insert_text"
    description: str = "Insert text at a line number, after a heading, or after a matching line in a note"
    category: ActionCategory = ActionCategory.vault
    requires_approval: bool = True
    parallel_safe: bool = False
    args_model: ClassVar[Type[BaseModel]] = InsertTextArgs

    async def execute(self, ctx: ActionContext, args: InsertTextArgs) -> ActionResult:
        path = normalize_path(args.path)
        old = await ctx.store.read(path)
        lines = old.split("\n")
        pos = args.position

        if isinstance(pos, LinePosition):
            index = pos.line_number - 1
            if index > len(lines):
                return ActionResult(
                    ok=False, error=f"invalid line number {pos.line_number}; note has {len(lines)} lines"
                )
            where = f"at line {pos.line_number}"
        elif isinstance(pos, HeadingPosition):
            wanted = pos.heading.lstrip("#").strip().lower()
            found = next(
                (i for i, line in enumerate(lines) if line.startswith("#") and line.lstrip("#").strip().lower() == wanted),
                None,
            )
            if found is None:
                if not pos.create_if_missing:
                    return ActionResult(ok=False, error=f"heading not found: {pos.heading}")
                heading = pos.heading if pos.heading.startswith("#") else f"## {pos.heading}"
                lines.extend(["", heading])
                found = len(lines) - 1
            index = found + 1
            where = f"after heading '{pos.heading}'"
        else:
            matches = [i for i, line in enumerate(lines) if pos.pattern in line]
            if len(matches) < pos.occurrence:
                return ActionResult(ok=False, error=f"pattern occurrence {pos.occurrence} not found: {pos.pattern}")
            index = matches[pos.occurrence - 1] + 1
            where = f"after '{pos.pattern}'"

        new_lines = lines[:index] + args.content.split("\n") + lines[index:]
        return await self._write(ctx, path, old, "\n".join(new_lines), f"Inserted text {where} in {path}")


@dataclass(frozen=True)
class SearchReplaceAction(_EditNoteAction):
    name: str = "search_replace"
    description: str = "Search and replace text in a note (plain text or regular expression)"
    category: ActionCategory = ActionCategory.vault
    requires_approval: bool = True
    parallel_safe: bool = False
    args_model: ClassVar[Type[BaseModel]] = SearchReplaceArgs

    async def validate(self, ctx: ActionContext, args: SearchReplaceArgs) -> ValidationResult:
        if args.regex:
            try:
                re.compile(args.search)
            except re.error as exc:
                return ValidationResult.fail(f"search: invalid regular expression: {exc}")
        return await super().validate(ctx, args)

    async def execute(self, ctx: ActionContext, args: SearchReplaceArgs) -> ActionResult:
        path = normalize_path(args.path)
        old = await ctx.store.read(path)
        pattern = args.search if args.regex else re.escape(args.search)
        if args.whole_word:
            pattern = rf"\b{pattern}\b"
        flags = 0 if args.case_sensitive else re.IGNORECASE
        replacement = args.replace if args.regex else args.replace.replace("\\", "\\\\")
        new, count = re.subn(pattern, replacement, old, count=0 if args.replace_all else 1, flags=flags)
        if count == 0:
            return ActionResult(ok=True, output={"path": path, "replacements": 0, "message": "No matches found"})
        return await self._write(ctx, path, old, new, f"Replaced {count} occurrence(s) in {path}", replacements=count)


@dataclass(frozen=True)
class DeleteFileAction:
    """Delete a note, or an empty folder."""

    name: str = "delete_file"
    description: str = "Delete a note or an empty folder"
    category: ActionCategory = ActionCategory.vault
    requires_approval: bool = True
    parallel_safe: bool = False
    args_model: ClassVar[Type[BaseModel]] = PathArgs

    async def validate(self, ctx: ActionContext, args: PathArgs) -> ValidationResult:
        err = _path_error(args.path)
        if err:
            return ValidationResult.fail(f"path: {err}")
        if not await ctx.store.exists(args.path):
            return ValidationResult.fail(f"path: not found: {args.path}")
        return ValidationResult.ok()

    async def execute(self, ctx: ActionContext, args: PathArgs) -> ActionResult:
        path = normalize_path(args.path)
        if await ctx.store.is_folder(path):
            await ctx.store.delete_folder(path)
            return ActionResult(
                ok=True,
                output={"path": path, "message": f"Deleted folder {path}"},
                reversal=reversals.delete_folder(ctx.store, path),
            )
        content = await ctx.store.read(path)
        await ctx.store.delete(path)
        return ActionResult(
            ok=True,
            output={"path": path, "message": f"Deleted {path}"},
            reversal=reversals.delete_file(ctx.store, path, content),
        )


class _TransferAction:
    async def validate(self, ctx: ActionContext, args: TransferArgs) -> ValidationResult:
        errors: List[str] = []
        for field_name in ("source_path", "destination_path"):
            err = _path_error(getattr(args, field_name))
            if err:
                errors.append(f"{field_name}: {err}")
        if errors:
            return ValidationResult(valid=False, errors=errors)
        if not await ctx.store.exists(args.source_path) or await ctx.store.is_folder(args.source_path):
            errors.append(f"source_path: file not found: {args.source_path}")
        if await ctx.store.exists(args.destination_path):
            errors.append(f"destination_path: {args.destination_path} already exists")
        if normalize_path(args.source_path) == normalize_path(args.destination_path):
            errors.append("destination_path: must differ from source_path")
        return ValidationResult(valid=not errors, errors=errors)


@dataclass(frozen=True)
class MoveFileAction(_TransferAction):
    name: str = "move_file"
    description: str = "Move or rename a note"
    category: ActionCategory = ActionCategory.vault
    requires_approval: bool = True
    parallel_safe: bool = False
    args_model: ClassVar[Type[BaseModel]] = TransferArgs

    async def execute(self, ctx: ActionContext, args: TransferArgs) -> ActionResult:
        src, dst = normalize_path(args.source_path), normalize_path(args.destination_path)
        await ctx.store.move(src, dst)
        return ActionResult(
            ok=True,
            output={"source_path": src, "destination_path": dst, "message": f"Moved {src} to {dst}"},
            reversal=reversals.move_file(ctx.store, src, dst),
        )


@dataclass(frozen=True)
class CopyFileAction(_TransferAction):
    name: str = "copy_file"
    description: str = "Copy a note to a new path"
    category: ActionCategory = ActionCategory.vault
    requires_approval: bool = True
    parallel_safe: bool = False
    args_model: ClassVar[Type[BaseModel]] = TransferArgs

    async def execute(self, ctx: ActionContext, args: TransferArgs) -> ActionResult:
        src, dst = normalize_path(args.source_path), normalize_path(args.destination_path)
        await ctx.store.copy(src, dst)
        return ActionResult(
            ok=True,
            output={"source_path": src, "destination_path": dst, "message": f"Copied {src} to {dst}"},
            reversal=reversals.copy_file(ctx.store, src, dst),
        )


@dataclass(frozen=True)
class CreateFolderAction:
    name: str = "create_folder"
    description: str = "Create a new folder in the vault"
    category: ActionCategory = ActionCategory.vault
    requires_approval: bool = True
    parallel_safe: bool = False
    args_model: ClassVar[Type[BaseModel]] = PathArgs

    async def validate(self, ctx: ActionContext, args: PathArgs) -> ValidationResult:
        err = _path_error(args.path)
        if err:
            return ValidationResult.fail(f"path: {err}")
        if await ctx.store.exists(args.path):
            return ValidationResult.fail(f"path: {args.path} already exists")
        return ValidationResult.ok()

    async def execute(self, ctx: ActionContext, args: PathArgs) -> ActionResult:
        path = normalize_path(args.path)
        await ctx.store.create_folder(path)
        return ActionResult(
            ok=True,
            output={"path": path, "message": f"Created folder {path}"},
            reversal=reversals.create_folder(ctx.store, path),
        )


# ----------------------------------------------------------------------------
# Read-only actions
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class ReadNoteAction:
    name: str = "read_note"
    description: str = "Read the content of a note"
    category: ActionCategory = ActionCategory.vault
    requires_approval: bool = False
    parallel_safe: bool = True
    args_model: ClassVar[Type[BaseModel]] = PathArgs

    async def validate(self, ctx: ActionContext, args: PathArgs) -> ValidationResult:
        err = _path_error(args.path)
        if err:
            return ValidationResult.fail(f"path: {err}")
        if not await ctx.store.exists(args.path) or await ctx.store.is_folder(args.path):
            return ValidationResult.fail(f"path: note not found: {args.path}")
        return ValidationResult.ok()

    async def execute(self, ctx: ActionContext, args: PathArgs) -> ActionResult:
        path = normalize_path(args.path)
        return ActionResult(ok=True, output={"path": path, "content": await ctx.store.read(path)})


@dataclass(frozen=True)
class SearchNotesAction:
    name: str = "search_notes"
    description: str = "Search note paths and contents for a text"
    category: ActionCategory = ActionCategory.analysis
    requires_approval: bool = False
    parallel_safe: bool = True
    args_model: ClassVar[Type[BaseModel]] = SearchArgs

    async def validate(self, ctx: ActionContext, args: SearchArgs) -> ValidationResult:
        return ValidationResult.ok()

    async def execute(self, ctx: ActionContext, args: SearchArgs) -> ActionResult:
        needle = args.query.lower()
        hits: List[Dict[str, Any]] = []
        for path in await ctx.store.list_files():
            content = await ctx.store.read(path)
            in_path = needle in path.lower()
            line = next((ln.strip() for ln in content.split("\n") if needle in ln.lower()), None)
            if in_path or line is not None:
                hits.append({"path": path, "excerpt": line or ""})
            if len(hits) >= args.limit:
                break
        return ActionResult(ok=True, output={"query": args.query, "results": hits, "count": len(hits)})


@dataclass(frozen=True)
class AnalyzeVaultAction:
    name: str = "analyze_vault"
    description: str = "Summarize the vault structure: folders, note counts and largest folders"
    category: ActionCategory = ActionCategory.analysis
    requires_approval: bool = False
    parallel_safe: bool = True
    args_model: ClassVar[Type[BaseModel]] = AnalyzeVaultArgs

    async def validate(self, ctx: ActionContext, args: AnalyzeVaultArgs) -> ValidationResult:
        if args.folder is None:
            return ValidationResult.ok()
        err = _path_error(args.folder)
        if err:
            return ValidationResult.fail(f"folder: {err}")
        if not await ctx.store.is_folder(args.folder):
            return ValidationResult.fail(f"folder: not found: {args.folder}")
        return ValidationResult.ok()

    async def execute(self, ctx: ActionContext, args: AnalyzeVaultArgs) -> ActionResult:
        files = await ctx.store.list_files(args.folder)
        per_folder: Dict[str, int] = {}
        for path in files:
            folder = posixpath.dirname(path) or "/"
            per_folder[folder] = per_folder.get(folder, 0) + 1
        folders = await ctx.store.list_folders()
        if args.folder is not None:
            prefix = normalize_path(args.folder)
            folders = [f for f in folders if f == prefix or f.startswith(prefix + "/")]
        largest = sorted(per_folder.items(), key=lambda kv: (-kv[1], kv[0]))[:5]
        return ActionResult(
            ok=True,
            output={
                "total_notes": len(files),
                "total_folders": len(folders),
                "folders": folders,
                "largest_folders": [{"folder": f, "notes": n} for f, n in largest],
                "markdown_notes": sum(1 for p in files if p.endswith(".md")),
            },
        )


def default_actions() -> List[Any]:
    return [
        CreateNoteAction(),
        ModifyNoteAction(),
        AppendNoteAction(),
        InsertTextAction(),
        SearchReplaceAction(),
        DeleteFileAction(),
        MoveFileAction(),
        CopyFileAction(),
        CreateFolderAction(),
        ReadNoteAction(),
        SearchNotesAction(),
        AnalyzeVaultAction(),
    ]
