import re
from html import unescape
from urllib.parse import urljoin

from bs4 import BeautifulSoup, NavigableString, Tag

_NON_CONTENT_TAGS = ["script", "style", "head", "noscript", "template", "iframe", "svg"]
_CHROME_TAGS = ["nav", "aside", "footer", "form"]
_BLOCK_TAGS = ["p", "div", "section", "article", "tr", "blockquote", "pre", "figcaption"]
_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)


def extract_title(html: str) -> str:
    soup = BeautifulSoup(html, "lxml")
    title_tag = soup.find("title")
    return title_tag.get_text(strip=True) if title_tag else ""


def find_title_tag(content: str) -> str:
    """Cheap ``<title>`` lookup on already-stored content."""
    match = _TITLE_RE.search(content)
    return match.group(1).strip() if match else ""


def _content_root(soup: BeautifulSoup) -> Tag:
    main = soup.find("main")
    if main is not None and main.get_text(strip=True):
        return main
    articles = soup.find_all("article")
    if articles:
        return max(articles, key=lambda a: len(a.get_text(strip=True)))
    return soup.find("body") or soup


def html_to_text(html: str, base_url: str = "") -> str:
    """Reduce a web page to the text worth attaching to a prompt.

    Site chrome (navigation, sidebars, footers, forms) is dropped and the
    page's ``<main>`` or largest ``<article>`` is kept when present. Headings
    become ``#`` lines, list items ``- `` bullets, and links ``text (url)``
    with relative targets resolved against ``base_url``.
    """
    soup = BeautifulSoup(html, "lxml")

    for tag in soup.find_all(_NON_CONTENT_TAGS):
        tag.decompose()
    for tag in soup.find_all(_CHROME_TAGS):
        tag.decompose()
    # Page headers are chrome; article headers usually hold the headline.
    for header in soup.find_all("header"):
        if header.find_parent(["article", "main"]) is None:
            header.decompose()

    root = _content_root(soup)

    for br in root.find_all("br"):
        br.replace_with("\n")

    for level in range(1, 7):
        for heading in root.find_all(f"h{level}"):
            heading.insert(0, NavigableString("#" * level + " "))
            heading.insert(0, NavigableString("\n"))
            heading.append(NavigableString("\n"))

    for tag in root.find_all(_BLOCK_TAGS):
        tag.insert(0, NavigableString("\n"))
        tag.append(NavigableString("\n"))

    for a in root.find_all("a", href=True):
        href = a["href"]
        if not href or href.startswith(("#", "javascript:", "mailto:")):
            continue
        target = urljoin(base_url, href) if base_url else href
        link_text = a.get_text(strip=True)
        if target != link_text:
            a.replace_with(f"{link_text} ({target})" if link_text else target)

    for li in root.find_all("li"):
        li.insert(0, NavigableString("\n- "))

    for cell in root.find_all(["td", "th"]):
        cell.append(NavigableString("\t"))

    text = unescape(root.get_text())

    # Collapse layout whitespace left behind by the markup.
    text = re.sub(r"\t+", "  ", text)
    text = re.sub(r"[ \xa0]{3,}", "  ", text)
    text = re.sub(r"\n[ \t]+\n", "\n\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
