from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import httpx
from loguru import logger

from toolchat.errors import DirectiveError
from toolchat.tools.html_utilities import html_to_text
from toolchat.tools.read_file_tool import extract_docx_text
from toolchat.tools.web.web_fetch_tool import (
    DEFAULT_MAX_CHARS,
    MAX_RESPONSE_BYTES,
    http_client,
    too_large_message,
    truncation_notice,
)

_LANGUAGES = {
    "js": "javascript",
    "ts": "typescript",
    "py": "python",
    "rb": "ruby",
    "java": "java",
    "cpp": "cpp",
    "cs": "csharp",
    "go": "go",
    "rs": "rust",
    "php": "php",
    "html": "html",
    "css": "css",
    "json": "json",
    "yml": "yaml",
    "yaml": "yaml",
    "md": "markdown",
    "sql": "sql",
    "sh": "bash",
    "bash": "bash",
    "txt": "text",
}

COMMIT_INSTRUCTION = (
    "Look at the current changes in the repository using the git tool (status and diff). "
    "Write a commit message for them: a short imperative summary line under 72 characters, "
    "a blank line, then a brief description of what changed."
)

PROMPTS_DIRNAME = "prompts"


@dataclass
class Attachment:
    data: bytes
    mime_type: str = "application/pdf"
    source: str = ""


@dataclass
class PreprocessResult:
    processed_prompt: str
    attachments: list[Attachment] = field(default_factory=list)
    return_prompt: bool = False
    resolved_project_dir: str | None = None


def language_for(path: str) -> str:
    extension = path.rsplit(".", 1)[-1] if "." in path else ""
    return _LANGUAGES.get(extension, extension)


def _under(base_dir: str, path: str) -> Path:
    return Path(base_dir) / path.strip().lstrip("/")


def _fenced_file(display: str, file_path: Path) -> str:
    if file_path.suffix.lower() == ".docx":
        content = extract_docx_text(file_path)
    else:
        content = file_path.read_text(encoding="utf-8")
    return f"File: {display}\n``` {language_for(display)}\n{content}\n```"


class DirectivePreprocessor:
    """Expands ``@`` line directives in raw user input.

    Content directives (``@list-prompts``, ``@prompt``, ``@file``, ``@files``,
    ``@dir``, ``@url``) replace their line with generated text and mark the result
    as something to echo back instead of sending to the model. Only when none of
    those are present are the side-effect directives (``@projectdir``, ``@pdf``,
    ``@commit``) applied.
    """

    def __init__(self, base_dir: str, *, transport: httpx.AsyncBaseTransport | None = None):
        self._base_dir = base_dir
        self._transport = transport

    async def process(self, raw_message: str) -> PreprocessResult:
        lines = raw_message.split("\n")

        output, matched = await self._expand_content(lines)
        if matched:
            logger.debug(f"Content directives expanded ({matched} matched)")
            return PreprocessResult(processed_prompt="\n".join(output).strip(), return_prompt=True)

        return await self._apply_side_effects(lines)

    async def _expand_content(self, lines: list[str]) -> tuple[list[str], int]:
        output: list[str] = []
        matched = 0
        for line in lines:
            if line.startswith("@list-prompts"):
                output.append(self._list_prompts())
            elif line.startswith("@prompt "):
                output.append(self._read_prompt(line[len("@prompt "):].strip()))
            elif line.startswith("@files "):
                output.extend(self._read_globs(line[len("@files "):].split()))
            elif line.startswith("@file "):
                output.append(self._read_file(line[len("@file "):].strip()))
            elif line.startswith("@dir"):
                output.append(self._list_dir(line[len("@dir"):].strip()))
            elif line.startswith("@url "):
                output.append(await self._fetch_url(line[len("@url "):].strip()))
            else:
                output.append(line)
                continue
            matched += 1
        return output, matched

    async def _apply_side_effects(self, lines: list[str]) -> PreprocessResult:
        output: list[str] = []
        attachments: list[Attachment] = []
        project_dir: str | None = None
        for line in lines:
            if line.startswith("@projectdir"):
                project_dir = self._resolve_project_dir(line[len("@projectdir"):].strip())
            elif line.startswith("@pdf "):
                attachments.append(await self._fetch_pdf(line[len("@pdf "):].strip()))
            elif line.startswith("@commit"):
                output.append(COMMIT_INSTRUCTION)
            else:
                output.append(line)

        return PreprocessResult(
            processed_prompt="\n".join(output).strip(),
            attachments=attachments,
            resolved_project_dir=project_dir,
        )

    def _list_prompts(self) -> str:
        prompts_dir = Path(self._base_dir) / PROMPTS_DIRNAME
        try:
            names = sorted(p.stem for p in prompts_dir.iterdir() if p.is_file())
        except OSError as ex:
            return f"Error: could not list prompts in {prompts_dir}: {ex}"
        return "Prompts:\n" + "\n".join(names) + "\n"

    def _read_prompt(self, name: str) -> str:
        if not name:
            raise DirectiveError("Prompt name cannot be empty")
        prompt_path = Path(self._base_dir) / PROMPTS_DIRNAME / f"{name}.md"
        try:
            return prompt_path.read_text(encoding="utf-8")
        except OSError as ex:
            raise DirectiveError(f'Could not read prompt "{name}": {ex}') from ex

    def _read_file(self, path: str) -> str:
        try:
            return _fenced_file(path, _under(self._base_dir, path))
        except (OSError, UnicodeDecodeError, ValueError) as ex:
            logger.warning(f"@file {path} failed: {ex}")
            return f"Error: could not read file {path}: {ex}"

    def _read_globs(self, patterns: list[str]) -> list[str]:
        base = Path(self._base_dir)
        output: list[str] = []
        for pattern in patterns:
            relative = pattern.lstrip("/")
            if any(ch in relative for ch in "*?["):
                matches = sorted(p for p in base.glob(relative) if p.is_file())
            else:
                matches = [base / relative]
            if not matches:
                output.append(f"Error: no files match {pattern}")
                continue
            for match in matches:
                display = match.relative_to(base).as_posix() if match.is_relative_to(base) else str(match)
                try:
                    output.append(_fenced_file(display, match))
                except (OSError, UnicodeDecodeError, ValueError) as ex:
                    output.append(f"Error: could not read file {display}: {ex}")
        return output

    def _list_dir(self, path: str) -> str:
        directory = _under(self._base_dir, path)
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as ex:
            logger.warning(f"@dir {path} failed: {ex}")
            return f"Error: could not list directory {path or '.'}: {ex}"
        names = [f"{e.name}/" if e.is_dir() else e.name for e in entries]
        return "File tree:\n" + "\n".join(names) + "\n"

    async def _fetch_url(self, url: str) -> str:
        try:
            async with http_client(self._transport) as client:
                response = await client.get(url)
        except httpx.HTTPError as ex:
            logger.warning(f"@url {url} failed: {ex}")
            return f"Url: {url}\nError: {ex}"

        if response.is_error:
            return f"Url: {url}\nStatus: {response.status_code}"
        if len(response.content) > MAX_RESPONSE_BYTES:
            logger.warning(f"@url {url} body too large: {len(response.content):,} bytes")
            return f"Url: {url}\nError: {too_large_message(len(response.content))}"

        content_type = response.headers.get("content-type", "")
        body = html_to_text(response.text) if "html" in content_type or not content_type else response.text
        body = body.strip()
        if len(body) > DEFAULT_MAX_CHARS:
            body = f"{body[:DEFAULT_MAX_CHARS]}\n\n{truncation_notice(DEFAULT_MAX_CHARS)}"
        return f"URL: {url}\n```\n{body}\n```\n"

    def _resolve_project_dir(self, name: str) -> str:
        if not name:
            raise DirectiveError("Project directory name cannot be empty")
        base = Path(self._base_dir).resolve()
        project_dir = _under(self._base_dir, name).resolve()
        if not project_dir.is_relative_to(base):
            raise DirectiveError(f"Project directory {name} is outside the base directory.")
        if not project_dir.is_dir():
            raise DirectiveError(f"{project_dir} does not exist.")
        return str(project_dir)

    async def _fetch_pdf(self, url: str) -> Attachment:
        try:
            async with http_client(self._transport) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as ex:
            raise DirectiveError(f"Could not fetch PDF {url}: {ex}") from ex
        logger.debug(f"@pdf {url}: {len(response.content):,} bytes")
        return Attachment(data=response.content, mime_type="application/pdf", source=url)


async def preprocess(
    raw_message: str,
    base_dir: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PreprocessResult:
    return await DirectivePreprocessor(base_dir, transport=transport).process(raw_message)
