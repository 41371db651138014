"""Location resolution CLI commands."""

import asyncio

import typer
from pydantic import ValidationError

from ph_locator.lib.geocoder import InvalidLocationQueryError, NoMatchError
from ph_locator.schemas.location import (
    LocationRequest,
    LocationResponse,
    NearestStreetResponse,
    StreetGeometryFeatureCollection,
)
from ph_locator.services.location_service import NEAREST_STREET_DEFAULT_RADIUS_M, LocationService

EXIT_NO_MATCH = 1
EXIT_INVALID = 2


def resolve(
    query: str = typer.Argument(..., help="Free-text address or place name"),
    street: str = typer.Option("", "--street", help="Street hint"),
    vicinity: str = typer.Option("", "--vicinity", help="Vicinity or landmark hint"),
    barangay: str = typer.Option("", "--barangay", help="Barangay hint"),
    city: str = typer.Option("", "--city", help="City or municipality hint"),
    province: str = typer.Option("", "--province", help="Province hint"),
    anchor_lat: float | None = typer.Option(None, "--anchor-lat", help="Anchor latitude"),
    anchor_lon: float | None = typer.Option(None, "--anchor-lon", help="Anchor longitude"),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON"),  # noqa: FBT001
) -> None:
    """Resolve an address to a point, locked to its barangay when possible."""
    try:
        request = LocationRequest(
            query=query,
            street=street,
            vicinity=vicinity,
            barangay=barangay,
            city=city,
            province=province,
            anchor_lat=anchor_lat,
            anchor_lon=anchor_lon,
        )
    except ValidationError as e:
        typer.echo(f"Invalid request: {e.errors()[0]['msg']}", err=True)
        raise typer.Exit(code=EXIT_INVALID) from e

    response = asyncio.run(_resolve(request))
    _print_location(response, as_json)


def center(
    barangay: str = typer.Option("", "--barangay", help="Barangay"),
    city: str = typer.Option("", "--city", help="City or municipality"),
    province: str = typer.Option("", "--province", help="Province"),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON"),  # noqa: FBT001
) -> None:
    """Look up the coarse centre of an area."""
    response = asyncio.run(_center(barangay, city, province))
    _print_location(response, as_json)


def nearest_street(
    lat: float = typer.Option(..., "--lat", help="Latitude (-90 to 90)"),  # noqa: B008
    lon: float = typer.Option(..., "--lon", help="Longitude (-180 to 180)"),  # noqa: B008
    radius: int = typer.Option(NEAREST_STREET_DEFAULT_RADIUS_M, "--radius", help="Search radius in meters (80-800)"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),  # noqa: FBT001
) -> None:
    """Name the road nearest to a point."""
    response = asyncio.run(_nearest_street(lat, lon, radius))
    if response is None:
        typer.echo("No named street nearby", err=True)
        raise typer.Exit(code=EXIT_NO_MATCH)
    if as_json:
        typer.echo(response.model_dump_json(indent=2))
        return
    distance = f" ({response.distance_m:g} m)" if response.distance_m is not None else ""
    typer.echo(f"{response.name}{distance} [{response.source}]")


def street_geometry(
    street: str = typer.Argument(..., help='Street name, e.g. "Aznar Rd."'),
    lat: float = typer.Option(..., "--lat", help="Latitude near the street"),  # noqa: B008
    lon: float = typer.Option(..., "--lon", help="Longitude near the street"),  # noqa: B008
    city: str = typer.Option("", "--city", help="City hint, used for local street aliases"),
    barangay: str = typer.Option("", "--barangay", help="Barangay hint, used for local street aliases"),
) -> None:
    """Print the GeoJSON polyline of the road best matching a street name."""
    collection = asyncio.run(_street_geometry(street, lat, lon, city, barangay))
    typer.echo(collection.model_dump_json(indent=2))
    if not collection.matched:
        typer.echo("No matching street nearby", err=True)
        raise typer.Exit(code=EXIT_NO_MATCH)


async def _resolve(request: LocationRequest) -> LocationResponse:
    """Async implementation of resolve."""
    service = LocationService.from_settings()
    try:
        result = await service.resolve(request.query, request.to_hints(), request.to_anchor())
    except InvalidLocationQueryError as e:
        typer.echo(f"Invalid request: {e}", err=True)
        raise typer.Exit(code=EXIT_INVALID) from e
    except NoMatchError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=EXIT_NO_MATCH) from e
    return LocationResponse.from_result(result)


async def _center(barangay: str, city: str, province: str) -> LocationResponse:
    """Async implementation of center."""
    service = LocationService.from_settings()
    result = await service.resolve_center(barangay, city, province)
    return LocationResponse.from_result(result)


async def _nearest_street(lat: float, lon: float, radius: int) -> NearestStreetResponse | None:
    """Async implementation of nearest-street."""
    service = LocationService.from_settings()
    try:
        street = await service.nearest_street(lat, lon, radius)
    except InvalidLocationQueryError as e:
        typer.echo(f"Invalid request: {e}", err=True)
        raise typer.Exit(code=EXIT_INVALID) from e
    if street is None:
        return None
    return NearestStreetResponse(name=street.name, source=street.source, distance_m=street.distance_m)


async def _street_geometry(
    street: str, lat: float, lon: float, city: str, barangay: str
) -> StreetGeometryFeatureCollection:
    """Async implementation of street-geometry."""
    service = LocationService.from_settings()
    try:
        found = await service.street_geometry(street, lat, lon, city=city, barangay=barangay)
    except InvalidLocationQueryError as e:
        typer.echo(f"Invalid request: {e}", err=True)
        raise typer.Exit(code=EXIT_INVALID) from e
    return StreetGeometryFeatureCollection.from_result(found)


def _print_location(response: LocationResponse, as_json: bool) -> None:
    if as_json:
        typer.echo(response.model_dump_json(indent=2))
        return
    typer.echo(f"{response.lat:.6f}, {response.lon:.6f}")
    typer.echo(f"  Label:      {response.label}")
    typer.echo(f"  Source:     {response.source}")
    typer.echo(f"  Confidence: {response.confidence}")
    if response.boundary:
        typer.echo(f"  Boundary:   {len(response.boundary)} vertices")
