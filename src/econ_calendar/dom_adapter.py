#!/usr/bin/env python3
"""
DOM adapter for the Investing.com economic calendar

Everything that knows the site's markup lives here: selectors used to drive the
page and the row extraction over the rendered HTML. Swap this class when the
layout changes; the normalization pipeline only sees RawRow objects.

Markup contract (calendar table #economicCalendarData):
    <tr><td class="theDay">Monday, January 1, 2025</td></tr>        date separator
    <tr id="eventRowId_501">                                        event row
        <td class="time">14:30</td>
        <td class="flagCur"><span class="ceFlags" title="United States"></span> USD</td>
        <td class="sentiment"><i class="grayFullBullishIcon"></i>...</td>
        <td class="event"><a>Nonfarm Payrolls</a></td>
    </tr>
    <td id="eventActual_501">, <td id="eventForecast_501">, <td id="eventPrevious_501">
    are matched by id suffix anywhere in the document, not by row position.
"""

import logging

from bs4 import BeautifulSoup

from .errors import ScrapeStructureError
from .models import RawRow

logger = logging.getLogger(__name__)


class InvestingCalendarAdapter:
    """Selectors and row extraction for the Investing.com calendar page"""

    TABLE_SELECTOR = "#economicCalendarData"
    TABLE_ID = "economicCalendarData"
    LOADING_SELECTOR = "#economicCalendarData .loadingDiv, #economicCalendarLoading"

    DATE_PICKER_TOGGLE = "#datePickerToggleBtn"
    START_DATE_INPUT = "#startDate"
    END_DATE_INPUT = "#endDate"
    APPLY_DATES_BUTTON = "#applyBtn"
    TIME_FRAME_TAB = "#timeFrame_{window}"

    FILTER_TOGGLE = "#filterStateAnchor"
    FILTER_COUNTRY_INPUTS = "#countries_ul li input"
    FILTER_COUNTRY_CHECKBOX = "#country{site_id}"
    FILTER_SUBMIT = "#ecSubmitButton"

    OVERLAY_SELECTORS = (
        "#onetrust-consent-sdk",
        "#onetrust-banner-sdk",
        ".onetrust-pc-dark-filter",
        "#PromoteSignUpPopUp",
        ".signupWrap",
        ".generalOverlay",
        ".popupAdContainer",
        "div[class*='overlay']",
        "div[id*='google_ads_iframe']",
    )

    # Site-internal country ids for the filter panel
    FILTER_COUNTRY_IDS = {
        "USA": "5", "EUR": "72", "DEU": "17", "FRA": "22",
        "ESP": "26", "GBR": "4", "CHN": "37", "JPN": "35",
    }

    EVENT_ROW_PREFIX = "eventRowId_"
    SEPARATOR_CLASS = "theDay"
    FILLED_ICON_CLASS = "grayFullBullishIcon"
    ACTUAL_ID = "eventActual_{row_id}"
    FORECAST_ID = "eventForecast_{row_id}"
    PREVIOUS_ID = "eventPrevious_{row_id}"

    EMPTY_VALUES = ("", "\xa0", "--", "-")

    def __init__(self, parser="html.parser"):
        self.parser = parser

    # ===== SEPARATOR / CELL HELPERS =====

    def is_event_row(self, row):
        return (row.get('id') or '').startswith(self.EVENT_ROW_PREFIX)

    def looks_like_event(self, row):
        """Row carrying an id or event cells, whatever its id prefix"""
        return bool(row.get('id')) or row.select_one('td.event, td.time') is not None

    def separator_label(self, row):
        """Date label if the row is a date separator, else None"""
        if self.is_event_row(row):
            return None
        if self.SEPARATOR_CLASS in (row.get('class') or []):
            return row.get_text(" ", strip=True) or None
        cell = row.find(class_=self.SEPARATOR_CLASS)
        if cell is not None:
            return cell.get_text(" ", strip=True) or None
        return None

    def find_previous_separator(self, row):
        """Walk back through previous sibling rows to the nearest date separator"""
        for sibling in row.find_previous_siblings('tr'):
            label = self.separator_label(sibling)
            if label:
                return label
        # Sticky day headers can be rendered outside the row list
        marker = row.find_previous(class_=self.SEPARATOR_CLASS)
        if marker is not None:
            return marker.get_text(" ", strip=True)
        return ""

    def cell_text(self, node):
        if node is None:
            return ""
        text = node.get_text(" ", strip=True)
        return "" if text in self.EMPTY_VALUES else text

    def extract_country(self, row):
        """(country name, currency) from the flag cell"""
        cell = row.select_one('td.flagCur')
        if cell is None:
            return "", ""
        flag = cell.select_one('.ceFlags')
        country = (flag.get('title') or "").strip() if flag is not None else ""
        text = cell.get_text(" ", strip=True)
        currency = text.split(" ")[0] if text else ""
        return country, currency

    def count_impact_icons(self, row):
        cell = row.select_one('td.sentiment')
        if cell is None:
            return 0
        return len(cell.select(f'.{self.FILLED_ICON_CLASS}'))

    def lookup_value(self, soup, template, row_id):
        return self.cell_text(soup.find(id=template.format(row_id=row_id)))

    # ===== EXTRACTION =====

    def extract_raw_rows(self, html):
        """
        Extract event rows from the rendered calendar HTML.

        Returns:
            List[RawRow] in document order, each attributed to the date of the
            nearest preceding separator row

        Raises:
            ScrapeStructureError: calendar table missing from the document, or date
                separators are present but no row follows the event-row id scheme
        """
        soup = BeautifulSoup(html, self.parser)
        table = soup.find(id=self.TABLE_ID)
        if table is None:
            raise ScrapeStructureError(f"Calendar table #{self.TABLE_ID} not found in page")

        rows = []
        current_date = ""
        separators_seen = 0
        unmatched_rows = 0
        event_rows = 0

        for row in table.find_all('tr'):
            label = self.separator_label(row)
            if label:
                current_date = label
                separators_seen += 1
                continue

            if not self.is_event_row(row):
                if self.looks_like_event(row):
                    unmatched_rows += 1
                continue

            event_rows += 1

            # Lazily rendered tables can start mid-day
            if not current_date:
                current_date = self.find_previous_separator(row)
                if current_date:
                    logger.debug(f"Recovered date '{current_date}' for {row.get('id')} from earlier siblings")

            row_id = row['id'][len(self.EVENT_ROW_PREFIX):]
            country, currency = self.extract_country(row)
            event_link = row.select_one('td.event a') or row.select_one('td.event')

            raw = RawRow(
                row_id=row_id,
                date_label=current_date,
                time_text=self.cell_text(row.select_one('td.time')),
                country_name=country,
                currency=currency,
                event_name=self.cell_text(event_link),
                icon_count=self.count_impact_icons(row),
                actual=self.lookup_value(soup, self.ACTUAL_ID, row_id),
                forecast=self.lookup_value(soup, self.FORECAST_ID, row_id),
                previous=self.lookup_value(soup, self.PREVIOUS_ID, row_id),
            )

            if not raw.event_name or not raw.time_text:
                logger.debug(f"Skipping incomplete row {row.get('id')}")
                continue

            rows.append(raw)

        if separators_seen and unmatched_rows and not event_rows:
            raise ScrapeStructureError(
                f"{unmatched_rows} rows under {separators_seen} date separators but none with an "
                f"id starting with '{self.EVENT_ROW_PREFIX}'; row markup probably changed"
            )

        logger.info(f"Extracted {len(rows)} event rows across {separators_seen} date separators")
        return rows
