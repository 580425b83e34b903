"""Cinéma Beaubien: a listing page of posters, details on one page per film."""

from __future__ import annotations

import re
from typing import Any, Iterator

from selectolax.parser import HTMLParser, Node

from ..engine.models import ScrapedFilm
from .base import CinemaSource

YEAR_PATTERN = re.compile(r"(?<!\d)(?:19|20)\d{2}(?!\d)")
LABELS = ("Réalisation", "Pays", "Langue", "Durée", "Crédits", "Synopsis", "Genre")
DETAIL_FIELDS = {
    "director": "Réalisation",
    "country": "Pays",
    "language": "Langue",
    "duration": "Durée",
}


def _own_text(node: Node) -> str:
    return (node.text(deep=False, strip=True) or "").strip()


def _is_label(node: Node) -> bool:
    return (node.text(strip=True) or "").strip() in LABELS


def _iter_elements(tree: HTMLParser) -> Iterator[Node]:
    root = tree.body or tree.root
    if root is None:
        return iter(())
    return root.traverse(include_text=False)


def _find_label(tree: HTMLParser, label: str) -> Node | None:
    for node in _iter_elements(tree):
        if _own_text(node) == label:
            return node
    return None


def _following_texts(label_node: Node) -> list[str]:
    """Texts of the siblings after a label, up to the next label."""

    texts: list[str] = []
    sibling = label_node.next
    while sibling is not None and not _is_label(sibling):
        value = (sibling.text(separator=" ", strip=True) or "").strip()
        if value:
            texts.append(value)
        sibling = sibling.next
    return texts


def labelled_value(tree: HTMLParser, label: str) -> str | None:
    node = _find_label(tree, label)
    if node is None:
        return None
    values = _following_texts(node)
    return ", ".join(values) if values else None


def find_year(tree: HTMLParser) -> str | None:
    credits = _find_label(tree, "Crédits")
    text = " ".join(_following_texts(credits)) if credits is not None else ""
    if not text:
        root = tree.body or tree.root
        text = root.text(separator=" ") if root is not None else ""
    match = YEAR_PATTERN.search(text)
    return match.group(0) if match else None


class CinemaBeaubienSource(CinemaSource):
    source_id = "cinema_beaubien"
    default_base_url = "https://cinemacinema.ca/"
    listing_path = "/fr/cinema-beaubien/films"
    film_path_marker = "/fr/films/"

    def scrape(self) -> list[ScrapedFilm]:
        entries = self.parse_listing(self.fetch(self.url_for(self.listing_path)))
        self.logger.info("listing_parsed", entries=len(entries))
        films: list[ScrapedFilm] = []
        for title, url in entries:
            film = self._scrape_detail(title, url)
            if film.should_be_added():
                films.append(film)
        return films

    def parse_listing(self, html: str) -> list[tuple[str, str]]:
        """Return ``(title, absolute_url)`` pairs, one per distinct film page."""

        entries: list[tuple[str, str]] = []
        seen: set[str] = set()
        for anchor in HTMLParser(html).css("a[href]"):
            href = (anchor.attributes.get("href") or "").strip()
            if self.film_path_marker not in href:
                continue
            image = anchor.css_first("img[alt]")
            if image is None:
                continue
            title = (image.attributes.get("alt") or "").strip()
            if not title:
                continue
            url = self.url_for(href)
            if url in seen:
                continue
            seen.add(url)
            entries.append((title, url))
        return entries

    def parse_detail(self, html: str, title: str, url: str) -> ScrapedFilm:
        tree = HTMLParser(html)
        fields: dict[str, Any] = {"title": title, "url": url}
        heading = tree.css_first("h1")
        if heading is not None:
            detail_title = heading.text(separator=" ", strip=True)
            if detail_title:
                fields["title"] = detail_title
        for field_name, label in DETAIL_FIELDS.items():
            fields[field_name] = labelled_value(tree, label)
        fields["year"] = find_year(tree)
        return ScrapedFilm(**fields)

    def _scrape_detail(self, title: str, url: str) -> ScrapedFilm:
        try:
            return self.parse_detail(self.fetch(url), title, url)
        except Exception as exc:  # noqa: BLE001
            # Listing data is still worth a lookup when the detail page fails.
            self.logger.warning("detail_page_failed", url=url, error=str(exc))
            return ScrapedFilm(title=title, url=url)


__all__ = ["CinemaBeaubienSource", "find_year", "labelled_value"]
