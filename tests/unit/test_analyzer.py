"""
Unit Tests: Photo Analyzer
==========================
Tests for vision reply normalization and per-photo failure isolation.
"""

import pytest


class TestNormalizeAnalysis:
    """Tests for normalize_analysis function."""

    @pytest.mark.unit
    def test_full_reply(self):
        """A complete camelCase reply maps onto PhotoAnalysis."""
        from listing_engine.engine import normalize_analysis
        from listing_engine.models import DeficiencyKind, PhotoSubType, PhotoType

        analysis = normalize_analysis("p1", "memory://raw/p1.jpg", {
            "photoType": "exterior",
            "subType": "front",
            "scores": {"composition": 82, "lighting": 64, "sharpness": 90},
            "deficiencies": {"sky": {"severity": 75, "coverage": 35}, "lighting": 40},
            "heroScore": 88,
            "heroReason": "Strong curb appeal",
            "hasSky": True,
            "hasWindows": True,
            "confidence": 0.92,
        })

        assert analysis.photo_type == PhotoType.EXTERIOR
        assert analysis.sub_type == PhotoSubType.FRONT
        assert analysis.scores.composition == 82
        assert analysis.deficiency(DeficiencyKind.SKY).coverage == 35
        assert analysis.severity(DeficiencyKind.LIGHTING) == 40
        assert analysis.hero_score == 88
        assert analysis.has_sky and analysis.has_windows and not analysis.has_pool
        assert analysis.analysis_confidence == pytest.approx(0.92)
        assert analysis.is_analyzed

    @pytest.mark.unit
    def test_combined_type_and_defaults(self):
        """'interior_kitchen' splits into type and sub type; gaps use defaults."""
        from listing_engine.engine import normalize_analysis
        from listing_engine.models import PhotoSubType, PhotoType

        analysis = normalize_analysis("p1", "ref", {"photoType": "interior_kitchen"})

        assert analysis.photo_type == PhotoType.INTERIOR
        assert analysis.sub_type == PhotoSubType.KITCHEN
        assert analysis.hero_score == 50
        assert analysis.analysis_confidence == pytest.approx(0.7)

    @pytest.mark.unit
    def test_drone_defaults_to_aerial(self):
        """Drone shots without a sub type are aerial."""
        from listing_engine.engine import normalize_analysis
        from listing_engine.models import PhotoSubType

        assert normalize_analysis("p1", "ref", {"photoType": "drone"}).sub_type == PhotoSubType.AERIAL

    @pytest.mark.unit
    def test_values_are_clamped_and_cleaned(self):
        """Scores clamp to 0-100, percent confidence is scaled, unknown kinds dropped."""
        from listing_engine.engine import normalize_analysis
        from listing_engine.models import PhotoSubType

        analysis = normalize_analysis("p1", "ref", {
            "photoType": "INTERIOR",
            "subType": "ballroom",
            "scores": {"composition": 140, "lighting": -5, "sharpness": "sharp"},
            "deficiencies": {"ghosts": 90, "clutter": 0, "color": {"severity": 55}},
            "heroScore": 300,
            "confidence": 85,
        })

        assert analysis.sub_type == PhotoSubType.OTHER
        assert analysis.scores.composition == 100
        assert analysis.scores.lighting == 0
        assert analysis.scores.sharpness == 50
        assert [k.value for k in analysis.deficiencies] == ["color"]
        assert analysis.hero_score == 100
        assert analysis.analysis_confidence == pytest.approx(0.85)

    @pytest.mark.unit
    def test_unknown_type_raises(self):
        """An unusable classification is an AnalysisError."""
        from listing_engine.engine import normalize_analysis
        from listing_engine.errors import AnalysisError

        with pytest.raises(AnalysisError, match="p1"):
            normalize_analysis("p1", "ref", {"photoType": "painting"})


class TestPhotoFields:
    """Tests for photo_fields function."""

    @pytest.mark.unit
    def test_mapping_with_url(self):
        """'url' is accepted in place of 'ref'."""
        from listing_engine.engine.analyzer import photo_fields

        assert photo_fields({"id": 7, "url": "https://x/p.jpg"}) == ("7", "https://x/p.jpg")

    @pytest.mark.unit
    def test_missing_ref_raises(self):
        """A photo without a ref is rejected."""
        from listing_engine.engine.analyzer import photo_fields

        with pytest.raises(ValueError):
            photo_fields({"id": "p1"})


class TestAnalyzeListing:
    """Tests for PhotoAnalyzer.analyze_listing."""

    @pytest.mark.unit
    def test_results_keep_input_order(self, make_vision):
        """Analyses come back in input order regardless of completion order."""
        from listing_engine.engine import PhotoAnalyzer

        vision = make_vision({f"ref{n}": {"photoType": "interior", "heroScore": n} for n in range(6)})
        photos = [{"id": f"p{n}", "ref": f"ref{n}"} for n in range(6)]

        analyses = PhotoAnalyzer(vision, concurrency=3).analyze_listing(photos)

        assert [a.photo_id for a in analyses] == [f"p{n}" for n in range(6)]
        assert sorted(vision.described) == sorted(f"ref{n}" for n in range(6))

    @pytest.mark.unit
    def test_failures_become_placeholders(self, make_vision):
        """Backend errors and bad replies yield unanalyzed placeholders."""
        from listing_engine.engine import PhotoAnalyzer
        from listing_engine.errors import ProviderUnavailable

        vision = make_vision({
            "good": {"photoType": "exterior"},
            "down": ProviderUnavailable("vision offline"),
            "garbled": ValueError("not JSON"),
            "weird": {"photoType": "unknown"},
        })
        photos = [{"id": ref, "ref": ref} for ref in ("good", "down", "garbled", "weird")]

        analyses = PhotoAnalyzer(vision).analyze_listing(photos)

        assert [a.is_analyzed for a in analyses] == [True, False, False, False]
        assert "vision backend unavailable" in analyses[1].analysis_error
        assert analyses[2].analysis_confidence == 0

    @pytest.mark.unit
    def test_progress_callback(self, make_vision):
        """on_analyzed reports each completion."""
        from listing_engine.engine import PhotoAnalyzer

        vision = make_vision({"a": {"photoType": "interior"}, "b": {"photoType": "interior"}})
        seen = []

        PhotoAnalyzer(vision).analyze_listing(
            [{"id": "a", "ref": "a"}, {"id": "b", "ref": "b"}],
            on_analyzed=lambda done, total, photo_id: seen.append((done, total)),
        )

        assert sorted(seen) == [(1, 2), (2, 2)]
