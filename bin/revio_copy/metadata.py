"""Parse PacBio Revio ``*.metadata.xml`` descriptors into CellMetadata.

Only the elements needed to identify a cell are read:

    PacBioDataModel
      ExperimentContainer/Runs/Run/Outputs/SubreadSets/SubreadSet
        DataSetMetadata/Collections/CollectionMetadata
          RunDetails   Name, WhenCreated, WhenStarted
          WellSample   @Name
            BioSamples/BioSample  @Name
              DNABarcodes/DNABarcode  @Name

Instrument output qualifies these elements with several namespaces, so every
lookup uses the ``{*}`` wildcard.
"""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Iterable

from revio_copy.errors import DescriptorParseError, MissingField
from revio_copy.models import CellMetadata, SampleIdentity

logger = logging.getLogger(__name__)

_ROOT_TAG = "PacBioDataModel"

_COLLECTION_PATH = "/".join(
    f"{{*}}{tag}"
    for tag in (
        "ExperimentContainer",
        "Runs",
        "Run",
        "Outputs",
        "SubreadSets",
        "SubreadSet",
        "DataSetMetadata",
        "Collections",
        "CollectionMetadata",
    )
)


class MultiplexPolicy(Enum):
    """How a cell is classified as multiplexed.

    FIRST looks only at the first extracted sample's barcode. ANY accepts a
    barcode on any extracted sample. Both require more than one entry.
    """

    FIRST = "first"
    ANY = "any"


def is_multiplex(
    samples: Iterable[SampleIdentity],
    policy: MultiplexPolicy = MultiplexPolicy.ANY,
) -> bool:
    samples = list(samples)
    if len(samples) <= 1:
        return False
    if policy is MultiplexPolicy.FIRST:
        return samples[0].barcode != ""
    return any(s.barcode != "" for s in samples)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _text(elem: ET.Element | None, tag: str) -> str:
    if elem is None:
        return ""
    child = elem.find(f"{{*}}{tag}")
    if child is None or child.text is None:
        return ""
    return child.text.strip()


def extract_samples(well_sample: ET.Element) -> list[SampleIdentity]:
    """Expand each BioSample into one entry per DNABarcode (or one bare entry)."""
    samples: list[SampleIdentity] = []
    for bio in well_sample.findall("{*}BioSamples/{*}BioSample"):
        name = bio.get("Name", "").strip()
        barcodes = bio.findall("{*}DNABarcodes/{*}DNABarcode")
        if barcodes:
            for bc in barcodes:
                samples.append(SampleIdentity(name=name, barcode=bc.get("Name", "").strip()))
        else:
            samples.append(SampleIdentity(name=name))
    return samples


def parse_metadata(
    stream: BinaryIO,
    file_path: Path | str,
    policy: MultiplexPolicy = MultiplexPolicy.ANY,
) -> CellMetadata:
    """Decode one descriptor stream.

    Raises
    ------
    DescriptorParseError
        If the stream is not well-formed XML or the root element is wrong.
    MissingField
        If the run name is empty or the well sample declares no biosamples.
    """
    file_path = Path(file_path)
    try:
        root = ET.parse(stream).getroot()
    except ET.ParseError as exc:
        raise DescriptorParseError(file_path, str(exc)) from exc

    if _local_name(root.tag) != _ROOT_TAG:
        raise DescriptorParseError(
            file_path, f"unexpected root element <{_local_name(root.tag)}>"
        )

    collection = root.find(_COLLECTION_PATH)
    run_details = collection.find("{*}RunDetails") if collection is not None else None

    run_name = _text(run_details, "Name")
    if not run_name:
        raise MissingField("run name", file_path)

    well_sample = collection.find("{*}WellSample") if collection is not None else None
    samples = extract_samples(well_sample) if well_sample is not None else []
    if not samples:
        raise MissingField("biosamples", file_path)

    cell = CellMetadata(
        run_name=run_name,
        file_path=file_path,
        created_date=_text(run_details, "WhenCreated"),
        started_date=_text(run_details, "WhenStarted"),
        well_sample_name=well_sample.get("Name", "").strip(),
        samples=tuple(samples),
        is_multiplex=is_multiplex(samples, policy),
    )
    logger.debug(
        "parsed %s: run=%s samples=%d multiplex=%s",
        file_path, run_name, len(samples), cell.is_multiplex,
    )
    return cell


def parse_metadata_file(
    path: Path | str,
    policy: MultiplexPolicy = MultiplexPolicy.ANY,
) -> CellMetadata:
    """Open and parse a descriptor file."""
    path = Path(path)
    with open(path, "rb") as fh:
        return parse_metadata(fh, path, policy)
