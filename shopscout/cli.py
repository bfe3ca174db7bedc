from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Callable, Optional

import requests

from .catalog_writer import serialize
from .config import Settings, settings
from .document import parse
from .errors import MalformedMarkupError, NoCandidatesFound, TransportExhausted
from .excel_writer import write_candidates_to_excel
from .extract import ExtractionContext, run_pipeline
from .fetch import fetch_markup
from .types import MatchMode, ScrapeRequest, SiteScrapeResult
from .urls import resolve_target


logger = logging.getLogger(__name__)


MESSAGES = {
    "ru": {
        "stage_fetch": "[1/3] Загрузка страницы {url}…",
        "stage_extract": "[2/3] Поиск товаров (JSON-LD, OpenGraph, эвристики)…",
        "stage_done": "[3/3] Готово",
        "fetch_failed": "Не удалось загрузить страницу: {error}",
        "no_products": "Товары не найдены",
        "success": "Найдено товаров: {count} на {site}",
        "last": "Последний товар: {name} — {price}",
        "file": "Файл: {path}",
        "error": "Ошибка парсинга: {error}",
        "interrupted": "Прервано пользователем",
        "help_desc": (
            "Сбор каталога товаров с сайта в XML.\n"
            "Поддерживается извлечение из JSON-LD, OpenGraph и эвристики."
        ),
        "help_domain": "Домен или ссылка на страницу сайта",
        "help_pattern": "Шаблон ссылок на товары (например /p/)",
        "help_mode": "Режим сравнения шаблона",
        "help_out": "Путь для сохранения XML-каталога",
        "help_excel": "Путь для сохранения Excel (необязательно)",
        "help_template": "Путь к Excel-шаблону (необязательно)",
        "help_json": "Вывести результат в формате JSON",
        "help_concurrent": "Опрашивать все источники одновременно",
        "help_no_direct": "Не загружать страницу напрямую, только через прокси",
        "help_lang": "Язык сообщений: ru или en (по умолчанию ru)",
        "help_verbose": "Подробный журнал",
    },
    "en": {
        "stage_fetch": "[1/3] Fetching {url}…",
        "stage_extract": "[2/3] Looking for products (JSON-LD, OpenGraph, heuristics)…",
        "stage_done": "[3/3] Done",
        "fetch_failed": "Could not fetch the page: {error}",
        "no_products": "No products found",
        "success": "Found products: {count} on {site}",
        "last": "Last product: {name} — {price}",
        "file": "File: {path}",
        "error": "Parsing error: {error}",
        "interrupted": "Interrupted by user",
        "help_desc": (
            "Build an XML product catalog from a site.\n"
            "Extraction via JSON-LD, OpenGraph and DOM heuristics."
        ),
        "help_domain": "Domain or page URL",
        "help_pattern": "Product link pattern (e.g. /p/)",
        "help_mode": "Pattern match mode",
        "help_out": "Path to XML catalog output",
        "help_excel": "Path to Excel output (optional)",
        "help_template": "Path to Excel template (optional)",
        "help_json": "Print the result as JSON",
        "help_concurrent": "Query all retrieval paths at once",
        "help_no_direct": "Skip the direct fetch and use relays only",
        "help_lang": "Messages language: ru or en (default ru)",
        "help_verbose": "Verbose logging",
    },
}


def _msg(lang: str, key: str, **kwargs) -> str:
    lang_key = lang if lang in MESSAGES else "ru"
    template = MESSAGES[lang_key].get(key, "")
    return template.format(**kwargs)


def scrape_site(
    request: ScrapeRequest,
    session: Optional[requests.Session] = None,
    config: Settings = settings,
    progress: Optional[Callable[..., None]] = None,
) -> SiteScrapeResult:
    """Run one extraction: fetch, parse, extract, serialize.

    Transport exhaustion, unparseable markup and pages without recognisable
    products are reported as ``success=False``; nothing partial is returned.
    """
    notify = progress or (lambda key, **kw: None)
    if not request.target_identifier.strip():
        return SiteScrapeResult(success=False, site_name="")

    target = resolve_target(request.target_identifier)
    notify("stage_fetch", url=target.base_url)
    try:
        html, _ = fetch_markup(target, session=session, config=config)
    except TransportExhausted as exc:
        logger.error("Transport failed for %s: %s", target.base_url, exc)
        notify("fetch_failed", error=exc)
        return SiteScrapeResult(success=False, site_name=target.host)

    notify("stage_extract")
    ctx = ExtractionContext(
        base_url=target.base_url,
        url_pattern=request.url_pattern,
        match_mode=request.match_mode,
        config=config,
    )
    try:
        candidates = run_pipeline(parse(html), ctx)
        document, preview = serialize(
            candidates,
            source_url=target.base_url,
            max_size=config.max_catalog_size,
            description_limit=config.description_limit,
        )
    except (MalformedMarkupError, NoCandidatesFound) as exc:
        logger.warning("No catalog for %s: %s", target.base_url, exc)
        notify("no_products")
        return SiteScrapeResult(success=False, site_name=target.host)

    kept = tuple(candidates[: config.max_catalog_size])
    notify("stage_done")
    return SiteScrapeResult(
        success=True,
        site_name=target.host,
        product_count=len(kept),
        catalog_document=document,
        preview_entry=preview,
        candidates=kept,
    )


def _build_arg_parser(lang: str = "ru") -> argparse.ArgumentParser:
    loc = MESSAGES.get(lang, MESSAGES["ru"])
    p = argparse.ArgumentParser(
        prog="shopscout",
        description=loc["help_desc"],
    )
    p.add_argument("domain", help=loc["help_domain"])
    p.add_argument("-p", "--pattern", dest="pattern", default=None, help=loc["help_pattern"])
    p.add_argument(
        "-m",
        "--mode",
        dest="mode",
        choices=[m.value for m in MatchMode],
        default=MatchMode.CONTAINS.value,
        help=loc["help_mode"],
    )
    p.add_argument("-o", "--out", dest="out_path", default=None, help=loc["help_out"])
    p.add_argument("--excel", dest="excel_path", default=None, help=loc["help_excel"])
    p.add_argument("-t", "--template", dest="template_path", default=None, help=loc["help_template"])
    p.add_argument("--json", dest="as_json", action="store_true", help=loc["help_json"])
    p.add_argument("--concurrent", dest="concurrent", action="store_true", help=loc["help_concurrent"])
    p.add_argument("--no-direct", dest="no_direct", action="store_true", help=loc["help_no_direct"])
    p.add_argument(
        "--lang",
        dest="lang",
        choices=["ru", "en"],
        default=lang,
        help=loc["help_lang"],
    )
    p.add_argument("-v", "--verbose", dest="verbose", action="store_true", help=loc["help_verbose"])
    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_arg_parser("ru")
    args = parser.parse_args(argv)
    lang = args.lang
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = settings
    if args.concurrent:
        config = config.replace(concurrent_transport=True)
    if args.no_direct:
        config = config.replace(allow_direct=False)

    request = ScrapeRequest(
        target_identifier=args.domain,
        url_pattern=args.pattern or None,
        match_mode=MatchMode(args.mode),
    )

    def progress(key: str, **kwargs) -> None:
        print(_msg(lang, key, **kwargs), flush=True)

    try:
        result = scrape_site(request, config=config, progress=None if args.as_json else progress)
        if args.as_json:
            print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        if not result.success:
            return 2

        if not args.as_json:
            print(_msg(lang, "success", count=result.product_count, site=result.site_name))
            preview = result.preview_entry
            print(_msg(lang, "last", name=preview.name, price=preview.price))
        if args.out_path:
            with open(args.out_path, "w", encoding="utf-8") as fh:
                fh.write(result.catalog_document)
            if not args.as_json:
                print(_msg(lang, "file", path=args.out_path))
        if args.excel_path:
            write_candidates_to_excel(result.candidates, args.excel_path, template_path=args.template_path)
            if not args.as_json:
                print(_msg(lang, "file", path=args.excel_path))
        return 0
    except KeyboardInterrupt:
        print(_msg(lang, "interrupted"), file=sys.stderr)
        return 130
    except Exception as exc:
        print(_msg(lang, "error", error=exc), file=sys.stderr)
        return 1
