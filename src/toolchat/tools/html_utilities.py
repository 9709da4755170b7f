import re
from html import unescape

from bs4 import BeautifulSoup, NavigableString

_HIDDEN_TAGS = ["script", "style", "head", "noscript", "template", "iframe"]
_BLOCK_TAGS = ["p", "div", "tr", "section", "article", "h1", "h2", "h3", "h4", "h5", "h6", "blockquote", "pre"]


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def page_title(soup: BeautifulSoup) -> str:
    title_tag = soup.find("title")
    return title_tag.get_text(strip=True) if title_tag else ""


def html_to_text(html: str | BeautifulSoup) -> str:
    """Convert HTML to readable plain text.

    Only the body is kept; scripts, styles and other non-visible elements are
    dropped. Link targets are preserved inline as ``text (url)``.
    """
    soup = parse_html(html) if isinstance(html, str) else html

    for tag in soup.find_all(_HIDDEN_TAGS):
        tag.decompose()

    for br in soup.find_all("br"):
        br.replace_with("\n")

    for tag in soup.find_all(_BLOCK_TAGS):
        tag.insert(0, NavigableString("\n"))
        tag.append(NavigableString("\n"))

    for a in soup.find_all("a", href=True):
        href = a["href"]
        link_text = a.get_text(strip=True)
        if href and href != link_text and not href.startswith("#"):
            a.replace_with(f"{link_text} ({href})" if link_text else href)

    for li in soup.find_all("li"):
        li.insert(0, NavigableString("\n- "))

    for td in soup.find_all(["td", "th"]):
        td.append(NavigableString("\t"))

    body = soup.find("body")
    text = unescape((body or soup).get_text())

    text = re.sub(r"\t+", "  ", text)
    text = re.sub(r"[ \xa0]{3,}", "  ", text)
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
