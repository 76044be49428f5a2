"""
Example endpoints and a catalogue of known public vector web services.

Used in documentation, the CLI and integration tests.
"""

import pandas as pd

from .acquisition.exceptions import InputError
from .acquisition.models import BoundingBox

EXAMPLE_URLS = {
    # Tasmania LIST open data WFS (parcels, vegetation, LGAs, hydro, transport)
    "list_tasmania": (
        "https://services.thelist.tas.gov.au/arcgis/services/"
        "Public/OpenDataWFS/MapServer/WFSServer"
    ),
    # Esri SampleWorldCities WFS (continents, cities; small, always available)
    "esri_sample": (
        "https://sampleserver6.arcgisonline.com/arcgis/services/"
        "SampleWorldCities/MapServer/WFSServer"
    ),
}

# EPSG:28355 (MGA Zone 55)
EXAMPLE_BBOXES = {
    "sandy_bay": BoundingBox(xmin=523800, ymin=5250400, xmax=524400, ymax=5251000),
    "hobart": BoundingBox(xmin=519000, ymin=5247000, xmax=529000, ymax=5257000),
}

KNOWN_SERVICES = [
    {
        "name": "LIST Tasmania",
        "url": EXAMPLE_URLS["list_tasmania"],
        "driver": "WFS",
        "region": "Tasmania, Australia",
        "description": (
            "Cadastral parcels, vegetation (TASVEG), LGA boundaries, "
            "transport, hydro"
        ),
        "srs": "EPSG:28355",
        "notes": "Rich service, 100+ layers. Use version='2.0.0'",
    },
    {
        "name": "Esri SampleWorldCities",
        "url": EXAMPLE_URLS["esri_sample"],
        "driver": "WFS",
        "region": "Global",
        "description": "Continents and world cities, small demo dataset",
        "srs": "EPSG:4326",
        "notes": "Always available, good for testing. Esri-hosted sample server",
    },
]


def example_url(service: str = "list_tasmania") -> str:
    """
    Example service endpoint URL.

    Args:
        service: "list_tasmania" or "esri_sample".

    Returns:
        The service URL.

    Raises:
        InputError: For an unknown service name.
    """
    try:
        return EXAMPLE_URLS[service]
    except KeyError:
        raise InputError(
            f"Unknown example service {service!r}; "
            f"choose from {', '.join(EXAMPLE_URLS)}"
        )


def example_bbox(area: str = "sandy_bay") -> BoundingBox:
    """
    Example bounding box in EPSG:28355.

    Args:
        area: "sandy_bay" (~600 m square) or "hobart" (~10 km square).

    Returns:
        BoundingBox for the area.

    Raises:
        InputError: For an unknown area name.
    """
    try:
        return EXAMPLE_BBOXES[area]
    except KeyError:
        raise InputError(
            f"Unknown example area {area!r}; choose from {', '.join(EXAMPLE_BBOXES)}"
        )


def known_services() -> pd.DataFrame:
    """
    Catalogue of known, tested public services.

    Returns:
        DataFrame with columns name, url, driver, region, description,
        srs, notes.
    """
    return pd.DataFrame(
        KNOWN_SERVICES,
        columns=["name", "url", "driver", "region", "description", "srs", "notes"],
    )
