"""Locating a template by filesystem path or bundled resource."""

from __future__ import annotations

import shutil
from importlib import resources
from pathlib import Path

from app.render.errors import TemplateNotFound, WriteFailure


def _split_resource(source: str, default_package: str | None) -> tuple[str | None, str]:
    """Split ``"package:name.xlsx"`` into its parts.

    A bare name belongs to ``default_package``.
    """
    package, sep, name = source.partition(":")
    if sep and package and name:
        return package, name
    return default_package, source


def copy_template(
    source: str | Path,
    destination: str | Path,
    package: str | None = None,
) -> Path:
    """Copy the template behind ``source`` to ``destination``.

    A file at ``source`` wins; otherwise ``source`` is looked up as a
    package resource. The caller's file is only ever read.

    Raises:
        TemplateNotFound: If neither lookup finds a file.
    """
    destination = Path(destination)
    path = Path(source)
    if path.is_file():
        try:
            shutil.copyfile(path, destination)
        except OSError as e:
            raise WriteFailure("Failed to copy template", detail=f"{path} -> {destination}: {e}") from e
        return destination

    package_name, name = _split_resource(str(source), package)
    if package_name is None:
        raise TemplateNotFound(
            "Template not found",
            detail=f"{source} is not a file and no template package is configured",
        )

    try:
        resource = resources.files(package_name).joinpath(name)
        found = resource.is_file()
    except (ModuleNotFoundError, TypeError) as e:
        raise TemplateNotFound(
            "Template not found",
            detail=f"{source}: template package {package_name!r} cannot be imported",
        ) from e

    if not found:
        raise TemplateNotFound(
            "Template not found",
            detail=f"{source} is neither a file nor a resource in {package_name!r}",
        )

    with resource.open("rb") as src, open(destination, "wb") as dst:
        shutil.copyfileobj(src, dst)
    return destination
