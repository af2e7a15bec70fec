from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from typing import Any
from urllib.parse import quote_plus, urljoin

from bs4 import BeautifulSoup

from jobcrawler.schemas.job import RawJobRecord

logger = logging.getLogger(__name__)

MIN_SECTION_LENGTH = 100
DESCRIPTION_SOURCE_LIMIT = 2000
FIELDS = ("title", "company", "location", "experience", "salary", "description")
BLOCK_TAGS = ["article", "li", "section", "div"]
HEADING_TAGS = ["h1", "h2", "h3", "h4"]

ROLE_WORDS = (
    "engineer|developer|analyst|manager|executive|specialist|consultant"
    "|designer|scientist|architect|administrator|intern"
)
CITIES = (
    "Mumbai|Delhi|New Delhi|Bangalore|Bengaluru|Chennai|Hyderabad|Pune|Kolkata"
    "|Ahmedabad|Gurgaon|Gurugram|Noida|Remote|Work from home|WFH"
)
SKILL_WORDS = (
    r"JavaScript|TypeScript|Python|Java|React|Node\.?js|Angular|Vue|PHP|C\+\+|C#|Golang|Kotlin|Swift"
    r"|SQL|MySQL|PostgreSQL|MongoDB|Redis|AWS|Azure|GCP|Docker|Kubernetes|Git|HTML|CSS"
    r"|Express|Spring Boot|Spring|Django|Flask|FastAPI|TensorFlow|PyTorch|Spark|Kafka"
    r"|Machine Learning|Data Science|Flutter|React Native"
)

HTML_MARKER = re.compile(r"<(?:!doctype|html|body|div|li|article|section|ul|h[1-6])\b", re.I)
HEADING_LINE = re.compile(r"^#{1,4}\s+\S", re.M)
BLANK_LINES = re.compile(r"\n\s*\n")
LIST_SPLIT = re.compile(r"\s*[,|;/•]\s*")


def _label(names: str) -> re.Pattern[str]:
    # Matches "Company: X", "**Company:** X" and "Company**: X".
    return re.compile(rf"\b(?:{names})\**\s*:\**\s*([^\n<]+)", re.I)


GENERIC_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    "title": (
        _label("Job Title|Position|Role|Designation"),
        re.compile(rf"<h[1-4][^>]*>([^<]*(?:{ROLE_WORDS})[^<]*)</h[1-4]>", re.I),
        re.compile(rf"^#{{1,4}}\s+([^\n]*(?:{ROLE_WORDS})[^\n]*)", re.I | re.M),
        re.compile(rf"\*\*([^*\n]*(?:{ROLE_WORDS})[^*\n]*)\*\*", re.I),
    ),
    "company": (
        _label("Company|Organization|Organisation|Employer"),
        re.compile(
            r"\bat\s+([A-Z][a-zA-Z&.\-]+(?:\s+[A-Z][a-zA-Z&.\-]+){0,3}"
            r"(?:\s+(?:Ltd|Limited|Inc|Corp|Corporation|Pvt|Private|Technologies|Tech|Solutions|Systems"
            r"|Services|Consulting|Group))?)"
        ),
        re.compile(r"@\s*([A-Z][a-zA-Z&.\-]+(?:\s+[A-Z][a-zA-Z&.\-]+){0,3})"),
    ),
    "location": (
        _label("Location|Based in|City|Job Location"),
        re.compile(rf"\b({CITIES})\b", re.I),
    ),
    "experience": (
        _label("Experience|Exp"),
        re.compile(r"(\d+\s*(?:-|to)?\s*\d*\+?\s*(?:years?|yrs?)(?:\s*of\s*experience)?)", re.I),
        re.compile(r"\b(Fresher|Entry[- ]level|Junior|Senior|Lead)\b", re.I),
    ),
    "salary": (
        _label("Salary|Package|CTC|Compensation"),
        re.compile(r"(₹\s*[\d,.]+(?:\s*[-–]\s*₹?\s*[\d,.]+)?(?:\s*(?:lakh|lakhs|crore|LPA|per\s*annum))?)", re.I),
        re.compile(r"\b(\d+(?:\.\d+)?\s*[-–]\s*\d+(?:\.\d+)?\s*LPA)\b", re.I),
    ),
}

SKILL_PATTERNS: tuple[re.Pattern[str], ...] = (
    _label("Key Skills|Skills Required|Skills|Technologies|Tech Stack"),
    re.compile(rf"(?<![\w+#])({SKILL_WORDS})(?![\w+#])", re.I),
)


def looks_like_html(content: str) -> bool:
    return bool(HTML_MARKER.search(content[:4000]))


def html_to_text(content: str) -> str:
    soup = BeautifulSoup(content, "html.parser")
    for noisy in soup.find_all(["style", "script"]):
        noisy.decompose()
    return soup.get_text("\n\n", strip=True)


def heading_blocks(soup: BeautifulSoup) -> list[Any]:
    """Largest block elements that hold exactly one h1-h4 heading.

    A listing page usually wraps each posting in one such block, so these
    stand in for cards when no portal selector matches.
    """
    blocks = []
    for element in soup.find_all(BLOCK_TAGS):
        if len(element.find_all(HEADING_TAGS)) != 1:
            continue
        parent = element.find_parent(BLOCK_TAGS)
        if parent is not None and len(parent.find_all(HEADING_TAGS)) == 1:
            continue
        blocks.append(element)
    return blocks


def split_sections(text: str) -> list[str]:
    """Split page text into job-sized chunks.

    Markdown listings are split at headings so a heading stays with the
    paragraphs under it; anything else is split on blank lines.
    """
    starts = [match.start() for match in HEADING_LINE.finditer(text)]
    if len(starts) >= 2 or (starts and starts[0] > 0):
        bounds = starts + [len(text)]
        head = text[: starts[0]]
        sections = [head] if head.strip() else []
        sections.extend(text[bounds[i] : bounds[i + 1]] for i in range(len(starts)))
        return [section.strip() for section in sections if section.strip()]
    return [section.strip() for section in BLANK_LINES.split(text) if section.strip()]


def first_match(patterns: Iterable[re.Pattern[str]], text: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        if not match:
            continue
        value = (match.group(1) if match.groups() else match.group(0)).strip(" \t*:-")
        if value:
            return value
    return None


def match_skills(text: str) -> list[str]:
    for pattern in SKILL_PATTERNS:
        found: list[str] = []
        for match in pattern.finditer(text):
            value = match.group(1).strip(" \t*:")
            parts = LIST_SPLIT.split(value) if pattern is SKILL_PATTERNS[0] else [value]
            found.extend(part.strip(" .*") for part in parts if part.strip(" .*"))
        if found:
            return list(dict.fromkeys(found))
    return []


def normalize_source_key(name: str) -> str:
    key = (name or "").strip().lower()
    key = re.sub(r"\.(?:co\.in|com|in|net|org)$", "", key)
    return re.sub(r"[^a-z0-9]+", "", key)


class JobParser:
    """Extraction strategy for one job portal.

    Subclasses list CSS selectors per field in priority order; the generic
    regex patterns are tried after them. The base class is also the
    fallback for portals without a dedicated strategy.
    """

    name = "generic"
    aliases: tuple[str, ...] = ()
    card_selectors: tuple[str, ...] = ()
    selectors: dict[str, tuple[str, ...]] = {}
    skill_selectors: tuple[str, ...] = ()
    link_selectors: tuple[str, ...] = ()
    search_path = "/jobs?q={query}"

    def search_urls(self, base_url: str, keywords: Iterable[str]) -> list[str]:
        base = base_url.rstrip("/")
        urls: list[str] = []
        for keyword in keywords:
            path = self.search_path.format(query=quote_plus(keyword), slug=self._slug(keyword))
            url = f"{base}{path}"
            if url not in urls:
                urls.append(url)
        return urls or [base_url]

    def parse(self, content: str, source_url: str, content_type: str | None = None) -> Iterator[RawJobRecord]:
        if not content or not content.strip():
            return
        is_html = content_type == "html" if content_type else looks_like_html(content)
        if is_html:
            soup = BeautifulSoup(content, "html.parser")
            for noisy in soup.find_all(["style", "script"]):
                noisy.decompose()
            cards = self._collect_cards(soup)
            if cards:
                for card in cards:
                    record = self.parse_card(card, source_url)
                    if record is not None:
                        yield record
                return
            blocks = heading_blocks(soup)
            if blocks:
                for block in blocks:
                    record = self.parse_block(block, source_url)
                    if record is not None:
                        yield record
                return
            content = soup.get_text("\n\n", strip=True)
        for section in split_sections(content):
            if len(section) < MIN_SECTION_LENGTH:
                continue
            record = self.parse_section(section, source_url)
            if record is not None:
                yield record

    def parse_section(self, section: str, source_url: str) -> RawJobRecord | None:
        title = first_match(GENERIC_PATTERNS["title"], section)
        if not title:
            return None
        return RawJobRecord(
            title=title,
            company=first_match(GENERIC_PATTERNS["company"], section),
            location=first_match(GENERIC_PATTERNS["location"], section),
            experience=first_match(GENERIC_PATTERNS["experience"], section),
            salary=first_match(GENERIC_PATTERNS["salary"], section),
            skills=match_skills(section),
            description=section[:DESCRIPTION_SOURCE_LIMIT],
            source_url=source_url,
        )

    def parse_block(self, block: Any, source_url: str) -> RawJobRecord | None:
        """Generic extraction over one heading block of an unrecognised page.

        The heading is rendered as a markdown heading line so the usual
        title patterns apply; no minimum length is enforced here.
        """
        heading = block.find(HEADING_TAGS)
        text = block.get_text("\n", strip=True)
        record = self.parse_section(f"# {heading.get_text(' ', strip=True)}\n{text}", source_url)
        if record is None:
            return None
        record.description = text[:DESCRIPTION_SOURCE_LIMIT]
        record.apply_url = self._select_link(block, source_url)
        return record

    def parse_card(self, card: Any, source_url: str) -> RawJobRecord | None:
        text = card.get_text("\n", strip=True)

        values: dict[str, str | None] = {}
        for field_name in FIELDS:
            value = self._select_text(card, self.selectors.get(field_name, ()))
            if not value and field_name in GENERIC_PATTERNS:
                value = first_match(GENERIC_PATTERNS[field_name], text)
            values[field_name] = value

        if not values["title"]:
            return None

        skills = self._select_skills(card) or match_skills(text)
        return RawJobRecord(
            title=values["title"] or "",
            company=values["company"],
            location=values["location"],
            experience=values["experience"],
            salary=values["salary"],
            skills=skills,
            description=(values["description"] or text)[:DESCRIPTION_SOURCE_LIMIT],
            source_url=source_url,
            apply_url=self._select_link(card, source_url),
        )

    def _collect_cards(self, soup: BeautifulSoup) -> list[Any]:
        for selector in self.card_selectors:
            cards = soup.select(selector)
            if cards:
                return cards
        return []

    def _select_text(self, card: Any, selectors: Iterable[str]) -> str | None:
        for selector in selectors:
            element = card.select_one(selector)
            if element is None:
                continue
            value = element.get_text(" ", strip=True)
            if value:
                return value
        return None

    def _select_skills(self, card: Any) -> list[str]:
        for selector in self.skill_selectors:
            values: list[str] = []
            for element in card.select(selector):
                text = element.get_text(" ", strip=True)
                values.extend(part for part in LIST_SPLIT.split(text) if part)
            if values:
                return list(dict.fromkeys(values))
        return []

    def _select_link(self, card: Any, source_url: str) -> str | None:
        candidates = list(self.link_selectors) + ["a[href]"]
        for selector in candidates:
            element = card.select_one(selector)
            if element is None and card.name == "a" and card.get("href"):
                element = card
            if element is None:
                continue
            href = (element.get("href") or "").strip()
            if href and not href.startswith(("#", "javascript:")):
                return urljoin(source_url, href)
        return None

    def _slug(self, value: str) -> str:
        return re.sub(r"[^a-zA-Z0-9]+", "-", value.strip()).strip("-").lower()


class GenericJobParser(JobParser):
    name = "generic"


class NaukriParser(JobParser):
    name = "naukri"
    card_selectors = ("div.srp-jobtuple-wrapper", "article.jobTuple", "div.cust-job-tuple")
    selectors = {
        "title": ("a.title", "h2 a"),
        "company": ("a.comp-name", "a.subTitle", "span.comp-name"),
        "location": ("span.locWdth", "li.location span", "span.loc"),
        "experience": ("span.expwdth", "li.experience span", "span.exp"),
        "salary": ("span.sal", "li.salary span"),
        "description": ("span.job-desc", "div.job-description"),
    }
    skill_selectors = ("ul.tags-gt li", "ul.tags li")
    link_selectors = ("a.title[href]", "h2 a[href]")
    search_path = "/{slug}-jobs"


class IndeedParser(JobParser):
    name = "indeed"
    card_selectors = ("div.job_seen_beacon", "div.cardOutline", "div.jobsearch-SerpJobCard")
    selectors = {
        "title": ("h2.jobTitle", "a.jcs-JobTitle"),
        "company": ("span[data-testid='company-name']", "span.companyName"),
        "location": ("div[data-testid='text-location']", "div.companyLocation"),
        "salary": ("div.salary-snippet-container", "div[data-testid='attribute_snippet_testid']"),
        "description": ("div.job-snippet", "div[data-testid='jobsnippet_footer']"),
    }
    link_selectors = ("h2.jobTitle a[href]", "a.jcs-JobTitle[href]", "a[data-jk][href]")
    search_path = "/jobs?q={query}&l=India&sort=date"


class LinkedInParser(JobParser):
    name = "linkedin"
    card_selectors = ("div.base-search-card", "div.base-card", "li.job-result-card")
    selectors = {
        "title": ("h3.base-search-card__title", "h3.base-card__title", "h3"),
        "company": ("h4.base-search-card__subtitle", "h4.base-card__subtitle", "h4"),
        "location": ("span.job-search-card__location",),
        "salary": ("span.job-search-card__salary-info",),
    }
    link_selectors = ("a.base-card__full-link[href]", "a.base-card__link[href]")
    search_path = "/jobs/search?keywords={query}&location=India"


class FounditParser(JobParser):
    name = "foundit"
    aliases = ("monster", "monsterindia")
    card_selectors = ("div.srpResultCardContainer", "div.cardContainer")
    selectors = {
        "title": ("div.jobTitle", "h3.jobTitle"),
        "company": ("div.companyName", "span.companyName"),
        "location": ("div.details.location", "span.location"),
        "experience": ("div.details.experience", "span.experience"),
        "salary": ("div.details.salary", "span.salary"),
        "description": ("div.jobDescription",),
    }
    skill_selectors = ("div.skills span", "ul.skill-list li")
    link_selectors = ("a[href*='/job/']",)
    search_path = "/srp/results?query={query}&locations=India"


class TimesJobsParser(JobParser):
    name = "timesjobs"
    card_selectors = ("li.job-bx",)
    selectors = {
        "title": ("h2 a", "h2"),
        "company": ("h3.joblist-comp-name",),
        "location": ("ul.top-jd-dtl li span", "span.location"),
        "experience": ("ul.top-jd-dtl li:first-child",),
        "description": ("ul.list-job-dtl li",),
    }
    skill_selectors = ("span.srp-skills", "div.more-skills-sections span")
    link_selectors = ("h2 a[href]",)
    search_path = "/candidate/job-search.html?searchType=personalizedSearch&txtKeywords={query}&txtLocation=India"


DEFAULT_PARSERS: tuple[type[JobParser], ...] = (
    NaukriParser,
    IndeedParser,
    LinkedInParser,
    FounditParser,
    TimesJobsParser,
)


class ParserRegistry:
    def __init__(self, parsers: Iterable[JobParser] | None = None) -> None:
        self.generic = GenericJobParser()
        self._parsers: dict[str, JobParser] = {}
        for parser in parsers if parsers is not None else (cls() for cls in DEFAULT_PARSERS):
            self.register(parser)

    def register(self, parser: JobParser) -> None:
        for key in (parser.name, *parser.aliases):
            self._parsers[normalize_source_key(key)] = parser

    def is_known(self, source_name: str) -> bool:
        return normalize_source_key(source_name) in self._parsers

    def get(self, source_name: str) -> JobParser:
        parser = self._parsers.get(normalize_source_key(source_name))
        if parser is None:
            logger.debug("No dedicated parser for %r; using generic extraction", source_name)
            return self.generic
        return parser
