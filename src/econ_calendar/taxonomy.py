"""
Event name translation (English -> Spanish) and keyword categorization

translate() must only ever be applied to the source-language name, once, at
ingestion time. Its output is not valid input.
"""

import re
from typing import Iterable, List, Optional

TRANSLATIONS = {
    # Headline indicators
    "GDP": "PIB",
    "Gross Domestic Product": "Producto Interno Bruto",
    "CPI": "IPC",
    "Consumer Price Index": "Índice de Precios al Consumidor",
    "PPI": "IPP",
    "Producer Price Index": "Índice de Precios al Productor",
    "PCE Price Index": "Índice de Precios PCE",
    "Unemployment Rate": "Tasa de Desempleo",
    "Jobless Claims": "Solicitudes de Desempleo",
    "Initial Jobless Claims": "Solicitudes Iniciales de Desempleo",
    "Nonfarm Payrolls": "Nóminas No Agrícolas",
    "Non-Farm Payrolls": "Nóminas No Agrícolas",
    "Average Hourly Earnings": "Ganancias Promedio por Hora",
    "Retail Sales": "Ventas Minoristas",
    "Industrial Production": "Producción Industrial",
    "Manufacturing": "Manufactura",
    "PMI": "PMI",
    "Purchasing Managers Index": "Índice de Gerentes de Compras",
    "Trade Balance": "Balanza Comercial",
    "Current Account": "Cuenta Corriente",
    "Budget": "Presupuesto",
    "Deficit": "Déficit",
    "Surplus": "Superávit",

    # Central banks
    "Interest Rate": "Tasa de Interés",
    "Interest Rate Decision": "Decisión de Tipos de Interés",
    "Federal Reserve": "Reserva Federal",
    "ECB": "BCE",
    "European Central Bank": "Banco Central Europeo",
    "BoE": "BdI",
    "Bank of England": "Banco de Inglaterra",
    "BoJ": "BdJ",
    "Bank of Japan": "Banco de Japón",
    "Monetary Policy": "Política Monetaria",
    "Rate Decision": "Decisión de Tasas",
    "Meeting Minutes": "Actas de Reunión",
    "Minutes": "Actas",
    "Speech": "Discurso",
    "Speaks": "Habla",
    "Press Conference": "Conferencia de Prensa",

    # Housing
    "Building Permits": "Permisos de Construcción",
    "Housing Starts": "Inicio de Viviendas",
    "Home Sales": "Ventas de Viviendas",
    "Existing Home Sales": "Ventas de Viviendas Existentes",
    "New Home Sales": "Ventas de Viviendas Nuevas",
    "House Price Index": "Índice de Precios de Vivienda",
    "Mortgage": "Hipoteca",

    # Confidence
    "Consumer Confidence": "Confianza del Consumidor",
    "Business Confidence": "Confianza Empresarial",
    "Sentiment": "Sentimiento",
    "Survey": "Encuesta",

    # Qualifiers
    "Preliminary": "Preliminar",
    "Revised": "Revisado",
    "YoY": "Anual",
    "MoM": "Mensual",
    "QoQ": "Trimestral",
    "Annual": "Anual",
    "Monthly": "Mensual",
    "Quarterly": "Trimestral",
    "Change": "Cambio",
    "Growth": "Crecimiento",
    "Index": "Índice",
    "Report": "Reporte",
    "Core": "Subyacente",
    "Inflation": "Inflación",
    "Exports": "Exportaciones",
    "Imports": "Importaciones",
    "Sales": "Ventas",
    "Orders": "Pedidos",
    "Factory Orders": "Pedidos de Fábrica",
    "Durable Goods Orders": "Pedidos de Bienes Duraderos",
    "Inventories": "Inventarios",
    "Crude Oil Inventories": "Inventarios de Petróleo Crudo",
    "Production": "Producción",
    "Capacity Utilization": "Utilización de Capacidad",
    "Statement": "Declaración",
    "Outlook": "Perspectiva",
    "Expectations": "Expectativas",
    "Composite": "Compuesto",
    "Services": "Servicios",
    "Construction": "Construcción",
    "Spending": "Gasto",
    "Personal Spending": "Gasto Personal",
    "Personal Income": "Ingreso Personal",
    "Consumer": "Consumidor",
    "Business": "Empresarial",
    "Optimism": "Optimismo",
    "Employment": "Empleo",
    "Employment Change": "Cambio del Empleo",
    "Claimant Count": "Conteo de Solicitantes",
    "Payrolls": "Nóminas",
    "Earnings": "Ganancias",
    "Wage": "Salario",
    "Prices": "Precios",
    "Price": "Precio",

    # Debt markets
    "Auction": "Subasta",
    "Bill": "Letra",
    "Bond": "Bono",
    "Note": "Nota",
    "Treasury": "Tesoro",
    "Yield": "Rendimiento",
    "Debt": "Deuda",

    # Abbreviations
    "w/": "c/",
    "w/o": "s/",
}

CATEGORY_KEYWORDS = {
    "employment": [
        'employment', 'unemployment', 'jobless', 'payroll', 'jobs', 'labor', 'wage', 'earnings', 'nfp',
        'claimant', 'empleo', 'desempleo', 'nómina', 'laboral', 'salario', 'solicitudes de desempleo',
    ],
    "inflation": [
        'cpi', 'ppi', 'pce', 'inflation', 'price index', 'prices', 'rpi', 'hicp', 'deflator',
        'consumer price', 'producer price', 'ipc', 'ipp', 'inflación', 'índice de precios', 'precios',
    ],
    "monetary": [
        'interest rate', 'fed ', 'fomc', 'central bank', 'monetary policy', 'ecb', 'boe', 'boj',
        'rate decision', 'speech', 'speaks', 'minutes', 'press conference',
        'auction', 'treasury', 'bond', 'bill', 'yield',
        'tasa de interés', 'tipos de interés', 'política monetaria', 'banco central', 'bce', 'discurso', 'actas', 'subasta',
    ],
    "manufacturing": [
        'manufacturing', 'pmi', 'industrial production', 'factory', 'durable goods', 'capacity utilization',
        'manufactura', 'producción industrial', 'pedidos de fábrica',
    ],
    "services": [
        'services', 'retail sales', 'consumer spending', 'personal spending', 'housing', 'home sales',
        'building permits', 'construction',
        'servicios', 'ventas minoristas', 'vivienda', 'construcción',
    ],
    "trade": [
        'trade balance', 'exports', 'imports', 'current account', 'balanza', 'exportaciones', 'importaciones',
        'cuenta corriente',
    ],
    "gdp": [
        'gdp', 'gross domestic', 'pib', 'producto interno',
    ],
    "energy": [
        'crude', 'oil', 'natural gas', 'gasoline', 'eia', 'opec', 'petróleo', 'crudo',
    ],
    "confidence": [
        'confidence', 'sentiment', 'survey', 'optimism', 'zew', 'ifo', 'nfib', 'tankan',
        'confianza', 'sentimiento', 'encuesta', 'optimismo',
    ],
}

CATEGORIES = tuple(CATEGORY_KEYWORDS)


def _build_pattern(terms):
    # Longest first so "Consumer Price Index" wins over "Price" and "Index".
    # Lookarounds instead of \b so terms ending in "/" still respect word edges.
    ordered = sorted(terms, key=len, reverse=True)
    alternation = "|".join(re.escape(term) for term in ordered)
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)


_LOOKUP = {term.lower(): target for term, target in TRANSLATIONS.items()}
_PATTERN = _build_pattern(TRANSLATIONS)


def translate(name: str) -> str:
    """Translate an English event name in a single left-to-right pass."""
    if not name:
        return name
    translated = _PATTERN.sub(lambda m: _LOOKUP[m.group(0).lower()], name)
    return re.sub(r"\s{2,}", " ", translated).strip()


def categorize(name: str) -> List[str]:
    """All categories whose keywords occur in the name, in table order."""
    if not name:
        return []
    lowered = f"{name.lower()} "
    return [
        category for category, keywords in CATEGORY_KEYWORDS.items()
        if any(keyword in lowered for keyword in keywords)
    ]


def primary_category(name: str) -> Optional[str]:
    categories = categorize(name)
    return categories[0] if categories else None


def matches_categories(name: str, wanted: Iterable[str]) -> bool:
    wanted = {w.lower() for w in wanted}
    return any(category in wanted for category in categorize(name))
