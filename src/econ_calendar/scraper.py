#!/usr/bin/env python3
"""
Economic Calendar Scraper - Investing.com
Drives a real Chrome session through the calendar's own controls (date picker,
country filter), extracts rows through the DOM adapter and normalizes them into
CanonicalEvent records.

Times on the page are wall-clock in the source site's display timezone. The
browser is forced into that same timezone and every timestamp is converted to
UTC from it, so both sides read one config value (SOURCE_TIMEZONE).
"""

import asyncio
import hashlib
import logging
import re
import time
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

try:
    import undetected_chromedriver as uc
    from selenium.webdriver.common.by import By
    from selenium.webdriver.support.ui import WebDriverWait
    from selenium.webdriver.support import expected_conditions as EC
    from selenium.common.exceptions import TimeoutException, WebDriverException
except ImportError:
    raise ImportError("Missing required packages. Install with: pip install -e .")

from dateutil import parser as dtparser
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_fixed

from .date_range import resolve_range
from .dom_adapter import InvestingCalendarAdapter
from .errors import ScrapeError, ScrapeStructureError, ScrapeTimeoutError
from .models import CanonicalEvent, Impact
from .taxonomy import primary_category, translate

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})$')
SPANISH_DATE_PATTERN = re.compile(r'(\d{1,2})\s+de\s+([a-záéíóúñ]+)\s+de\s+(\d{4})', re.IGNORECASE)

SPANISH_MONTHS = {
    'enero': 1, 'febrero': 2, 'marzo': 3, 'abril': 4, 'mayo': 5, 'junio': 6, 'julio': 7,
    'agosto': 8, 'septiembre': 9, 'setiembre': 9, 'octubre': 10, 'noviembre': 11, 'diciembre': 12,
}

# Site country label (English and Spanish editions) -> (ISO-3 code, display name)
TARGET_COUNTRIES = {
    "united states": ("USA", "United States"),
    "estados unidos": ("USA", "United States"),
    "euro zone": ("EUR", "Eurozone"),
    "eurozone": ("EUR", "Eurozone"),
    "zona euro": ("EUR", "Eurozone"),
    "germany": ("DEU", "Germany"),
    "alemania": ("DEU", "Germany"),
    "france": ("FRA", "France"),
    "francia": ("FRA", "France"),
    "spain": ("ESP", "Spain"),
    "españa": ("ESP", "Spain"),
    "united kingdom": ("GBR", "United Kingdom"),
    "reino unido": ("GBR", "United Kingdom"),
    "china": ("CHN", "China"),
    "japan": ("JPN", "Japan"),
    "japón": ("JPN", "Japan"),
}

# Fallback when the flag title is missing or unrecognized
CURRENCY_COUNTRIES = {
    "USD": ("USA", "United States"),
    "EUR": ("EUR", "Eurozone"),
    "GBP": ("GBR", "United Kingdom"),
    "JPY": ("JPN", "Japan"),
    "CNY": ("CHN", "China"),
    "RMB": ("CHN", "China"),
}

ALL_DAY_MARKERS = ('all day', 'todo el día', 'tentative', 'provisional')

BLOCKED_URL_PATTERNS = [
    "*.png", "*.jpg", "*.jpeg", "*.gif", "*.webp", "*.svg", "*.ico",
    "*.woff", "*.woff2", "*.ttf", "*.otf", "*.eot",
    "*.css",
]

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


# ===== NORMALIZATION HELPERS =====

def parse_date_label(label):
    """
    Parse a separator label into YYYY-MM-DD.

    Accepts the English edition ("Thursday, 24 December 2025",
    "Thursday, December 24, 2025") and the Spanish one
    ("Miércoles, 24 de diciembre de 2025"). Returns None if unparseable.
    """
    if not label:
        return None

    spanish = SPANISH_DATE_PATTERN.search(label)
    if spanish:
        day, month_name, year = spanish.groups()
        month = SPANISH_MONTHS.get(month_name.lower())
        if month:
            try:
                return date(int(year), month, int(day)).isoformat()
            except ValueError:
                return None

    try:
        parsed = dtparser.parse(label, fuzzy=True, default=datetime(2000, 1, 1))
    except (ValueError, OverflowError):
        return None
    if not re.search(r'\d{4}', label):
        return None
    return parsed.date().isoformat()


def normalize_time(time_text):
    """'9:30' -> '09:30:00'; all-day and tentative markers -> '00:00:00'"""
    match = TIME_PATTERN.match((time_text or "").strip())
    if not match:
        if time_text and time_text.strip().lower() not in ALL_DAY_MARKERS:
            logger.debug(f"Non-standard time value '{time_text}' -> midnight")
        return "00:00:00"
    hours, minutes = match.groups()
    return f"{int(hours):02d}:{minutes}:00"


def to_utc(date_iso, time_str, source_tz):
    """Interpret date+time as wall-clock in source_tz and return the UTC instant"""
    local = datetime.fromisoformat(f"{date_iso}T{time_str}").replace(tzinfo=source_tz)
    return local.astimezone(timezone.utc)


def generate_event_id(date_iso, time_str, country_code, event_original):
    """Content-derived id: same (date, time, country, name) -> same id"""
    content = f"{date_iso}-{time_str}-{country_code}-{event_original}".encode('utf-8')
    return hashlib.sha256(content).hexdigest()[:32]


def match_country(country_name, currency):
    """(code, name) for target economies, else None"""
    if country_name:
        found = TARGET_COUNTRIES.get(country_name.strip().lower())
        if found:
            return found
    if currency:
        return CURRENCY_COUNTRIES.get(currency.strip().upper())
    return None


class CalendarScraper:
    """Investing.com calendar scraper producing CanonicalEvent records"""

    def __init__(self, source_url, source_timezone="Europe/Madrid", headless=True,
                 navigation_timeout=90, table_timeout=15, loading_timeout=30,
                 retries=2, retry_backoff=5.0, verbose=False, adapter=None):
        self.source_url = source_url
        self.source_timezone = source_timezone
        self.source_zoneinfo = ZoneInfo(source_timezone)
        self.headless = headless
        self.navigation_timeout = navigation_timeout
        self.table_timeout = table_timeout
        self.loading_timeout = loading_timeout
        self.retries = max(1, int(retries))
        self.retry_backoff = retry_backoff
        self.verbose = verbose
        self.adapter = adapter or InvestingCalendarAdapter()

    @classmethod
    def from_config(cls, config, adapter=None):
        return cls(adapter=adapter, **config.get_scraper_config())

    # ===== BROWSER SETUP =====

    def get_driver(self, window=None):
        """
        Create a Chrome driver pinned to the source timezone.

        Heavy static resources are blocked; scripts and documents are not,
        the calendar renders its rows client-side.

        Raises:
            ScrapeStructureError: browser timezone does not match the source timezone
            ScrapeError: driver could not be created
        """
        options = uc.ChromeOptions()
        if self.headless:
            options.add_argument("--headless=new")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        options.add_argument("--disable-gpu")
        options.add_argument("--disable-blink-features=AutomationControlled")
        options.add_argument(f"user-agent={USER_AGENT}")

        try:
            driver = uc.Chrome(options=options, use_subprocess=False)
        except WebDriverException as e:
            raise ScrapeError(f"Failed to start Chrome: {e}", window) from e
        logger.info("Chrome driver created successfully")

        try:
            driver.set_page_load_timeout(self.navigation_timeout)
            driver.execute_cdp_cmd("Network.enable", {})
            driver.execute_cdp_cmd("Network.setBlockedURLs", {"urls": BLOCKED_URL_PATTERNS})
            driver.execute_cdp_cmd("Emulation.setTimezoneOverride", {"timezoneId": self.source_timezone})
            browser_tz = driver.execute_script("return Intl.DateTimeFormat().resolvedOptions().timeZone")
        except WebDriverException as e:
            driver.quit()
            raise ScrapeError(f"Browser setup failed: {e}", window) from e

        if browser_tz != self.source_timezone:
            driver.quit()
            raise ScrapeStructureError(
                f"Browser timezone is {browser_tz}, expected {self.source_timezone}; "
                f"scraped times would be misattributed",
                window
            )

        logger.info(f"Browser timezone pinned to {browser_tz}")
        return driver

    # ===== PAGE INTERACTION =====

    def wait_for_table(self, driver):
        try:
            WebDriverWait(driver, self.table_timeout).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, self.adapter.TABLE_SELECTOR))
            )
        except TimeoutException as e:
            raise ScrapeTimeoutError(
                f"Calendar table did not appear within {self.table_timeout}s"
            ) from e

    def wait_for_loading(self, driver):
        """Block until the calendar's loading indicator is gone"""
        try:
            WebDriverWait(driver, self.loading_timeout).until(
                EC.invisibility_of_element_located((By.CSS_SELECTOR, self.adapter.LOADING_SELECTOR))
            )
        except TimeoutException as e:
            raise ScrapeTimeoutError(
                f"Calendar still loading after {self.loading_timeout}s"
            ) from e

    def remove_overlays(self, driver):
        """Delete consent banners and popups that intercept clicks"""
        removed = driver.execute_script(
            """
            let removed = 0;
            for (const sel of arguments[0]) {
                document.querySelectorAll(sel).forEach(el => { el.remove(); removed++; });
            }
            return removed;
            """,
            list(self.adapter.OVERLAY_SELECTORS)
        )
        if removed:
            logger.info(f"Removed {removed} overlay elements")
        return removed or 0

    def set_input_value(self, driver, selector, value):
        return driver.execute_script(
            """
            const el = document.querySelector(arguments[0]);
            if (!el) { return false; }
            el.value = arguments[1];
            el.dispatchEvent(new Event('input', {bubbles: true}));
            el.dispatchEvent(new Event('change', {bubbles: true}));
            return true;
            """,
            selector, value
        )

    def click(self, driver, selector):
        elements = driver.find_elements(By.CSS_SELECTOR, selector)
        if not elements:
            return False
        # JS click is not intercepted by leftover overlays
        driver.execute_script("arguments[0].click();", elements[0])
        return True

    def apply_country_filter(self, driver):
        """
        Tick the target countries in the site's filter panel.

        Best effort: rows are filtered again after extraction, so a blocked
        panel only costs page weight.
        """
        try:
            if not self.click(driver, self.adapter.FILTER_TOGGLE):
                logger.warning("Filter panel not found, relying on post-extraction filtering")
                return False

            WebDriverWait(driver, self.table_timeout).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, self.adapter.FILTER_SUBMIT))
            )
            checkbox_selectors = [
                self.adapter.FILTER_COUNTRY_CHECKBOX.format(site_id=site_id)
                for site_id in self.adapter.FILTER_COUNTRY_IDS.values()
            ]
            driver.execute_script(
                """
                document.querySelectorAll(arguments[0]).forEach(el => { el.checked = false; });
                for (const sel of arguments[1]) {
                    const box = document.querySelector(sel);
                    if (box) { box.checked = true; }
                }
                """,
                self.adapter.FILTER_COUNTRY_INPUTS, checkbox_selectors
            )
            self.click(driver, self.adapter.FILTER_SUBMIT)
            self.wait_for_loading(driver)
            logger.info("Country filter applied on site")
            return True

        except (TimeoutException, ScrapeTimeoutError, WebDriverException) as e:
            logger.warning(f"Country filter skipped: {e}")
            return False

    def apply_date_range(self, driver, start, end, window=None):
        """
        Select [start, end] through the date picker, or the time-frame tab
        for named windows when the picker is missing.

        Raises:
            ScrapeStructureError: neither control exists
            ScrapeTimeoutError: the reload did not finish
        """
        if self.click(driver, self.adapter.DATE_PICKER_TOGGLE):
            start_str = start.strftime("%d/%m/%Y")
            end_str = end.strftime("%d/%m/%Y")
            ok_start = self.set_input_value(driver, self.adapter.START_DATE_INPUT, start_str)
            ok_end = self.set_input_value(driver, self.adapter.END_DATE_INPUT, end_str)
            if not (ok_start and ok_end):
                raise ScrapeStructureError("Date picker inputs not found", window)
            if not self.click(driver, self.adapter.APPLY_DATES_BUTTON):
                raise ScrapeStructureError("Date picker apply button not found", window)
            logger.info(f"Date range applied: {start_str} -> {end_str}")

        elif window and window != "today":
            if not self.click(driver, self.adapter.TIME_FRAME_TAB.format(window=window)):
                raise ScrapeStructureError(f"No date picker and no tab for window '{window}'", window)
            logger.info(f"Date picker missing, switched to tab '{window}'")

        elif start != end:
            raise ScrapeStructureError("Date picker not found for a multi-day range", window)

        self.wait_for_loading(driver)

    def scroll_to_load_all(self, driver, max_scrolls=15, pause=0.8):
        """Scroll until the page height stops growing so lazy rows render"""
        last_height = driver.execute_script("return document.body.scrollHeight")
        scrolls = 0
        while scrolls < max_scrolls:
            driver.execute_script("window.scrollTo(0, document.body.scrollHeight);")
            time.sleep(pause)
            new_height = driver.execute_script("return document.body.scrollHeight")
            scrolls += 1
            if new_height == last_height:
                break
            last_height = new_height
        if self.verbose:
            logger.debug(f"Scrolled {scrolls} times to load all content")
        driver.execute_script("window.scrollTo(0, 0);")

    def load_calendar_html(self, start, end, window=None):
        """Run one browser session and return the rendered calendar HTML"""
        driver = self.get_driver(window)
        try:
            logger.info(f"Loading page: {self.source_url}")
            try:
                driver.get(self.source_url)
            except TimeoutException as e:
                raise ScrapeTimeoutError(
                    f"Navigation exceeded {self.navigation_timeout}s", window
                ) from e

            self.wait_for_table(driver)
            self.remove_overlays(driver)
            self.apply_country_filter(driver)
            self.remove_overlays(driver)
            self.apply_date_range(driver, start, end, window)
            self.scroll_to_load_all(driver)
            return driver.page_source

        except WebDriverException as e:
            raise ScrapeError(f"Browser failure: {e}", window) from e

        finally:
            try:
                driver.quit()
            except WebDriverException as e:
                logger.debug(f"Driver quit failed: {e}")

    # ===== NORMALIZATION =====

    def normalize_row(self, raw, fallback_date=None, fetched_at=None):
        """
        RawRow -> CanonicalEvent, or None for non-target countries and
        rows whose date cannot be determined.
        """
        country = match_country(raw.country_name, raw.currency)
        if country is None:
            return None
        country_code, country_name = country

        date_iso = parse_date_label(raw.date_label) or fallback_date
        if not date_iso:
            logger.warning(f"No date for row {raw.row_id} ('{raw.date_label}'), skipping")
            return None

        time_str = normalize_time(raw.time_text)
        event_original = raw.event_name

        return CanonicalEvent(
            id=generate_event_id(date_iso, time_str, country_code, event_original),
            event_timestamp=to_utc(date_iso, time_str, self.source_zoneinfo),
            date=date_iso,
            time=time_str,
            country=country_code,
            country_name=country_name,
            event=translate(event_original),
            event_original=event_original,
            impact=Impact.from_icon_count(raw.icon_count),
            actual=raw.actual or None,
            forecast=raw.forecast or None,
            previous=raw.previous or None,
            category=primary_category(event_original),
            fetched_at=fetched_at or datetime.now(timezone.utc),
        )

    def parse_html(self, html, fallback_date=None):
        """Extract, filter to target economies and normalize"""
        raw_rows = self.adapter.extract_raw_rows(html)
        fetched_at = datetime.now(timezone.utc)

        events = []
        discarded = 0
        for raw in raw_rows:
            event = self.normalize_row(raw, fallback_date, fetched_at)
            if event is None:
                discarded += 1
                continue
            events.append(event)
            if self.verbose:
                logger.debug(
                    f"✓ {event.event_original[:40]:40} | {event.date} {event.time} | "
                    f"{event.country} | Impact={event.impact.value} | Actual={event.actual}"
                )

        logger.info(f"Normalized {len(events)} events ({discarded} rows outside target countries or undated)")
        return events

    # ===== SCRAPE ENTRY POINTS =====

    def scrape_dates_sync(self, start, end, label=None):
        html = self.load_calendar_html(start, end, label)
        fallback = start.isoformat() if start == end else None
        return self.parse_html(html, fallback_date=fallback)

    async def scrape_dates(self, start, end, label=None):
        """
        Scrape [start, end] (source-local dates) with the retry budget.

        Raises:
            ScrapeError: last failure once every attempt is used
        """
        label = label or f"{start.isoformat()}..{end.isoformat()}"
        logger.info("=" * 70)
        logger.info(f"SCRAPE {label}: {start.isoformat()} -> {end.isoformat()} ({self.source_timezone})")
        logger.info("=" * 70)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retries),
            wait=wait_fixed(self.retry_backoff),
            retry=retry_if_exception_type(ScrapeError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                attempt_no = attempt.retry_state.attempt_number
                try:
                    events = await asyncio.to_thread(self.scrape_dates_sync, start, end, label)
                except ScrapeTimeoutError as e:
                    logger.warning(f"[{label}] attempt {attempt_no}/{self.retries} timed out: {e}")
                    raise
                except ScrapeStructureError as e:
                    logger.error(f"[{label}] attempt {attempt_no}/{self.retries} page structure mismatch: {e}")
                    raise

        logger.info(f"✓ {label}: {len(events)} events")
        return events

    async def scrape(self, window, now=None):
        """Scrape a named window resolved in the source timezone"""
        bounds = resolve_range(window, self.source_timezone, now)
        return await self.scrape_dates(bounds.start, bounds.end, label=window)
