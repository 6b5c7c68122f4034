"""Tests for mapping biosamples to hifi_reads BAM/PBI files."""
from __future__ import annotations

from pathlib import Path

import pytest

from fakes import make_cell, metadata_xml
from revio_copy.errors import (
    IndexFileMissing,
    NoFilesIdentified,
    NoReadFiles,
    SourceDirMissing,
)
from revio_copy.metadata import MultiplexPolicy, parse_metadata_file
from revio_copy.models import SampleIdentity
from revio_copy.report import build_report
from revio_copy.resolve import (
    destination_for,
    find_collisions,
    forward_barcode,
    identify_all_hifi_files,
    identify_hifi_files,
    movie_name,
    pick_single_bam,
)

S1 = [SampleIdentity("S1")]
MUX = [SampleIdentity("S1", "bc1001--bc1001"), SampleIdentity("S2", "bc1002--bc1002")]


class TestHelpers:

    def test_forward_barcode(self):
        assert forward_barcode("bc1001--bc1002") == "bc1001"
        assert forward_barcode("bc1001") == "bc1001"
        assert forward_barcode("") == ""

    def test_movie_name(self):
        assert movie_name(Path("/x/m84297_s1.metadata.xml")) == "m84297_s1"

    def test_destination_layout(self, output_dir):
        bam, pbi = destination_for(output_dir, "S1")
        assert bam == output_dir / "Sample_S1" / "S1.mod.unmapped.bam"
        assert pbi == output_dir / "Sample_S1" / "S1.mod.unmapped.bam.pbi"

    def test_pick_prefers_movie_prefix(self):
        files = [Path("a.hifi_reads.bam"), Path("m1.hifi_reads.bam")]
        assert pick_single_bam(files, "m1") == Path("m1.hifi_reads.bam")

    def test_pick_falls_back_to_sorted_first(self):
        files = [Path("z.hifi_reads.bam"), Path("b.hifi_reads.bam")]
        assert pick_single_bam(files, "m1") == Path("b.hifi_reads.bam")


class TestSingleSample:

    def test_single_file(self, revio_root, output_dir):
        descriptor = make_cell(revio_root, "RUN1", bams=["x.hifi_reads.bam"])
        mappings = identify_hifi_files(descriptor, S1, output_dir)

        assert len(mappings) == 1
        m = mappings[0]
        hifi = descriptor.parent.parent / "hifi_reads"
        assert m.source_bam == hifi / "x.hifi_reads.bam"
        assert m.source_pbi == hifi / "x.hifi_reads.bam.pbi"
        assert m.dest_bam == output_dir / "Sample_S1" / "S1.mod.unmapped.bam"
        assert m.dest_pbi == output_dir / "Sample_S1" / "S1.mod.unmapped.bam.pbi"
        assert m.sample_name == "S1"

    def test_multiple_matches_prefer_movie(self, revio_root, output_dir):
        descriptor = make_cell(
            revio_root, "RUN1", movie="m84297_s2",
            bams=["a_other.hifi_reads.bam", "m84297_s2.hifi_reads.bam"],
        )
        (m,) = identify_hifi_files(descriptor, S1, output_dir)
        assert m.source_bam.name == "m84297_s2.hifi_reads.bam"

    def test_non_hifi_bams_ignored(self, revio_root, output_dir):
        descriptor = make_cell(revio_root, "RUN1", bams=["x.fail_reads.bam"])
        with pytest.raises(NoReadFiles):
            identify_hifi_files(descriptor, S1, output_dir)

    def test_missing_pbi_is_fatal(self, revio_root, output_dir):
        descriptor = make_cell(revio_root, "RUN1", bams=["x.hifi_reads.bam"], with_pbi=False)
        with pytest.raises(IndexFileMissing) as exc_info:
            identify_hifi_files(descriptor, S1, output_dir)
        bam = descriptor.parent.parent / "hifi_reads" / "x.hifi_reads.bam"
        assert isinstance(exc_info.value, NoReadFiles)
        assert exc_info.value.path == bam
        assert str(exc_info.value) == f"PBI file not found for BAM: {bam}"

    def test_no_read_files_message(self, tmp_path):
        assert str(NoReadFiles(tmp_path)) == f"No HiFi BAM files found in {tmp_path}"
        assert str(NoReadFiles(tmp_path, "custom")) == "custom"

    def test_missing_hifi_dir(self, revio_root, output_dir):
        descriptor = make_cell(revio_root, "RUN1", hifi=False)
        with pytest.raises(SourceDirMissing):
            identify_hifi_files(descriptor, S1, output_dir)


class TestMultiplexed:

    def test_each_sample_gets_its_file(self, revio_root, output_dir):
        descriptor = make_cell(revio_root, "RUN1", bams=["a.bc1001.bam", "b.bc1002.bam"])
        mappings = identify_hifi_files(descriptor, MUX, output_dir)

        by_sample = {m.sample_name: m for m in mappings}
        assert len(mappings) == 2
        assert by_sample["S1"].source_bam.name == "a.bc1001.bam"
        assert by_sample["S2"].source_bam.name == "b.bc1002.bam"
        assert by_sample["S2"].dest_bam == output_dir / "Sample_S2" / "S2.mod.unmapped.bam"

    def test_sample_without_match_contributes_nothing(self, revio_root, output_dir):
        descriptor = make_cell(revio_root, "RUN1", bams=["a.bc1001.bam"])
        mappings = identify_hifi_files(descriptor, MUX, output_dir)
        assert [m.sample_name for m in mappings] == ["S1"]

    def test_bam_without_pbi_is_skipped(self, revio_root, output_dir):
        descriptor = make_cell(revio_root, "RUN1", bams=["a.bc1001.bam", "b.bc1002.bam"])
        (descriptor.parent.parent / "hifi_reads" / "b.bc1002.bam.pbi").unlink()
        mappings = identify_hifi_files(descriptor, MUX, output_dir)
        assert [m.sample_name for m in mappings] == ["S1"]

    def test_several_files_per_barcode(self, revio_root, output_dir):
        descriptor = make_cell(
            revio_root, "RUN1", bams=["m1.hifi_reads.bc1001.bam", "m1.fail_reads.bc1001.bam"]
        )
        mappings = identify_hifi_files(descriptor, MUX, output_dir)
        assert len(mappings) == 2
        assert {m.sample_name for m in mappings} == {"S1"}
        dest = output_dir / "Sample_S1" / "S1.mod.unmapped.bam"
        assert list(find_collisions(mappings)) == [dest]
        assert not build_report(mappings).ready

    def test_unbarcoded_sample_is_skipped(self, revio_root, output_dir):
        samples = [SampleIdentity("S0"), SampleIdentity("S1", "bc1001--bc1001")]
        descriptor = make_cell(revio_root, "RUN1", bams=["a.bc1001.bam", "other.bam"])
        mappings = identify_hifi_files(descriptor, samples, output_dir)
        assert [m.sample_name for m in mappings] == ["S1"]

    def test_first_policy_treats_mixed_cell_as_single(self, revio_root, output_dir):
        samples = [SampleIdentity("S0"), SampleIdentity("S1", "bc1001")]
        descriptor = make_cell(revio_root, "RUN1", bams=["x.hifi_reads.bam"])
        mappings = identify_hifi_files(descriptor, samples, output_dir, MultiplexPolicy.FIRST)
        assert [m.sample_name for m in mappings] == ["S0"]


class TestIdentifyAll:

    def test_end_to_end_single_sample(self, revio_root, output_dir):
        descriptor = make_cell(
            revio_root, "RUN1",
            xml=metadata_xml(run_name="RUN1", samples=[("S1", [])]),
            bams=["x.hifi_reads.bam"],
        )
        cell = parse_metadata_file(descriptor)
        mappings = identify_all_hifi_files([cell], output_dir)
        assert len(mappings) == 1
        assert mappings[0].dest_bam.relative_to(output_dir) == Path("Sample_S1/S1.mod.unmapped.bam")

    def test_end_to_end_multiplexed(self, revio_root, output_dir):
        descriptor = make_cell(
            revio_root, "RUN1",
            xml=metadata_xml(
                run_name="RUN1",
                samples=[("S1", ["bc1001--bc1001"]), ("S2", ["bc1002--bc1002"])],
            ),
            bams=["a.bc1001.bam", "b.bc1002.bam"],
        )
        cell = parse_metadata_file(descriptor)
        mappings = identify_all_hifi_files([cell], output_dir)
        assert sorted((m.sample_name, m.source_bam.name) for m in mappings) == [
            ("S1", "a.bc1001.bam"),
            ("S2", "b.bc1002.bam"),
        ]

    def test_failing_cell_is_skipped(self, revio_root, output_dir, caplog):
        good = parse_metadata_file(make_cell(
            revio_root, "RUN1", cell="1_A01",
            xml=metadata_xml(run_name="RUN1", samples=[("S1", [])]),
            bams=["x.hifi_reads.bam"],
        ))
        bad = parse_metadata_file(make_cell(
            revio_root, "RUN1", cell="1_B01",
            xml=metadata_xml(run_name="RUN1", samples=[("S2", [])]),
            hifi=False,
        ))
        mappings = identify_all_hifi_files([bad, good], output_dir)
        assert [m.sample_name for m in mappings] == ["S1"]
        assert "hifi_reads directory not found" in caplog.text

    def test_only_cell_without_hifi_dir(self, revio_root, output_dir):
        cell = parse_metadata_file(make_cell(revio_root, "RUN1", hifi=False))
        with pytest.raises(SourceDirMissing):
            identify_hifi_files(cell.file_path, cell.samples, output_dir)
        with pytest.raises(NoFilesIdentified):
            identify_all_hifi_files([cell], output_dir, run_name="RUN1")

    def test_sample_on_two_cells_collides(self, revio_root, output_dir, caplog):
        cells = [
            parse_metadata_file(make_cell(
                revio_root, "RUN1", cell=cell, movie=movie,
                xml=metadata_xml(run_name="RUN1", samples=[("S1", [])]),
                bams=[f"{movie}.hifi_reads.bam"],
            ))
            for cell, movie in (("1_A01", "m1"), ("1_B01", "m2"))
        ]
        mappings = identify_all_hifi_files(cells, output_dir)

        assert [m.source_bam.name for m in mappings] == ["m1.hifi_reads.bam", "m2.hifi_reads.bam"]
        collisions = find_collisions(mappings)
        assert list(collisions) == [output_dir / "Sample_S1" / "S1.mod.unmapped.bam"]
        assert collisions[mappings[0].dest_bam] == mappings
        assert "2 source files map to" in caplog.text

        report = build_report(mappings)
        assert report.missing_count == 0
        assert not report.ready

    def test_distinct_samples_do_not_collide(self, revio_root, output_dir):
        descriptor = make_cell(
            revio_root, "RUN1",
            xml=metadata_xml(
                run_name="RUN1",
                samples=[("S1", ["bc1001--bc1001"]), ("S2", ["bc1002--bc1002"])],
            ),
            bams=["a.bc1001.bam", "b.bc1002.bam"],
        )
        mappings = identify_all_hifi_files([parse_metadata_file(descriptor)], output_dir)
        assert find_collisions(mappings) == {}
