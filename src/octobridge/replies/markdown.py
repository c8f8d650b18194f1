"""Chat content to GitHub markdown.

Chat messages arrive as text with inline elements, e.g.::

    Looks good <img src="https://chat.example/a.png"/> &amp; ship it

Before such content becomes a GitHub comment it is:

1. passed through an optional MediaTransformer, which rehosts attachments
   so their URLs outlive the chat platform's storage
2. flattened: text is unescaped, images become ``![image](url)``, every
   other element is dropped together with its children; a tag without
   its counterpart is kept as literal text
3. suffixed with the INDICATOR marker and the configured footer, each on
   its own line

The marker is an HTML comment, invisible on GitHub, that lets webhook
handlers recognise comments the bridge posted itself.
"""

import html
import re
from typing import Dict, List, Optional, Protocol, Set, Tuple, runtime_checkable


INDICATOR = "<!-- octobridge -->"

IMAGE_ELEMENTS = {"img", "image"}

# Elements that never have children, with or without a trailing slash
VOID_ELEMENTS = {"br", "hr", "img", "input", "meta", "link", "wbr"}

_ELEMENT_RE = re.compile(
    r"<(/?)([a-zA-Z][\w:-]*)"
    r"((?:\s+[\w:-]+(?:\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s\"'>/]+))?)*)"
    r"\s*(/?)>"
)
_ATTR_RE = re.compile(r"([\w:-]+)(?:\s*=\s*(\"[^\"]*\"|'[^']*'|[^\s\"'>/]+))?")


@runtime_checkable
class MediaTransformer(Protocol):
    """Protocol for rehosting attachments embedded in chat content."""

    async def transform(self, content: str) -> str:
        """Return the content with attachment URLs replaced."""
        ...


def _parse_attrs(source: str) -> Dict[str, str]:
    attrs: Dict[str, str] = {}
    for name, value in _ATTR_RE.findall(source):
        if value[:1] in ("'", '"'):
            value = value[1:-1]
        attrs[name.lower()] = html.unescape(value)
    return attrs


def _paired(matches: List["re.Match[str]"]) -> Set[int]:
    """Indexes of opening and closing tags that match each other."""
    paired: Set[int] = set()
    open_tags: List[Tuple[str, int]] = []
    for index, match in enumerate(matches):
        closing, name, _, self_closing = match.groups()
        name = name.lower()
        if self_closing or name in VOID_ELEMENTS:
            continue
        if not closing:
            open_tags.append((name, index))
            continue
        for depth in range(len(open_tags) - 1, -1, -1):
            if open_tags[depth][0] == name:
                paired.update((open_tags[depth][1], index))
                # Opening tags left inside stay unmatched
                del open_tags[depth:]
                break
    return paired


def to_markdown(source: str) -> str:
    """Flatten chat content into markdown text.

    A tag without its counterpart (``a <b c`` style text, a stray
    ``</i>``) is not markup and is kept verbatim.
    """
    matches = list(_ELEMENT_RE.finditer(source))
    paired = _paired(matches)
    parts: List[str] = []
    skip_depth = 0
    position = 0

    for index, match in enumerate(matches):
        if skip_depth == 0:
            parts.append(html.unescape(source[position:match.start()]))
        position = match.end()

        closing, name, attr_source, self_closing = match.groups()
        name = name.lower()
        self_closing = self_closing or name in VOID_ELEMENTS
        is_paired = index in paired

        if skip_depth:
            if is_paired:
                skip_depth += -1 if closing else 1
            continue

        if closing:
            if not is_paired and not self_closing:
                parts.append(html.unescape(match.group(0)))
            continue

        if name in IMAGE_ELEMENTS:
            attrs = _parse_attrs(attr_source)
            url = attrs.get("src") or attrs.get("url")
            if url:
                parts.append(f"![image]({url})")
            if is_paired:
                skip_depth += 1
        elif is_paired:
            skip_depth += 1
        elif not self_closing:
            parts.append(html.unescape(match.group(0)))

    if skip_depth == 0:
        parts.append(html.unescape(source[position:]))
    return "".join(parts)


async def render_comment(
    content: str,
    footer: str,
    media: Optional[MediaTransformer] = None,
) -> str:
    """Turn a chat reply into the body of a GitHub comment.

    Args:
        content: The chat reply.
        footer: Configured footer appended after the marker.
        media: Optional attachment rehosting step.

    Returns:
        Markdown ready to post.
    """
    if media is not None:
        content = await media.transform(content)
    return "\n".join([to_markdown(content), INDICATOR, footer])


def is_bridge_comment(body: Optional[str]) -> bool:
    """Whether a GitHub comment body was posted by the bridge."""
    return bool(body) and INDICATOR in body
