"""
Tests for the page segment classifier and URL normalisation.
"""

import pytest

from src.segment import (
    MoneySubSegment,
    PageSegment,
    classify_money_sub_segment,
    classify_page_segment,
    is_money_page,
)
from src.utils.urls import normalise_path


class TestNormalisePath:
    """Path normalisation feeding every classifier."""

    def test_absolute_url_reduced_to_path(self):
        assert normalise_path("https://www.alanranger.com/Photography-Workshops/") == "/photography-workshops"

    def test_bare_path_and_slug(self):
        assert normalise_path("/photography-workshops") == "/photography-workshops"
        assert normalise_path("photography-workshops") == "/photography-workshops"

    def test_root_keeps_slash(self):
        assert normalise_path("https://www.alanranger.com/") == "/"

    @pytest.mark.parametrize("value", [None, "", "   ", 42, ["x"]])
    def test_unusable_input_is_root(self, value):
        assert normalise_path(value) == "/"


class TestClassifyPageSegment:
    """Rule order: override, education, fine art, money, support, system."""

    def test_blog_posts_are_education(self):
        assert classify_page_segment("/blog-on-photography/what-is-aperture") is PageSegment.EDUCATION

    def test_exact_education_pages(self):
        assert classify_page_segment("https://www.alanranger.com/free-online-photography-course") is PageSegment.EDUCATION
        assert classify_page_segment("/blog-on-photography") is PageSegment.EDUCATION

    def test_money_allowlist(self):
        assert classify_page_segment("/photography-workshops") is PageSegment.MONEY
        assert classify_page_segment("/coventry-photographer") is PageSegment.MONEY

    def test_money_keyword_substring(self):
        assert classify_page_segment("/photo-workshops-uk/snowdonia-weekend") is PageSegment.MONEY
        assert classify_page_segment("/beginners-photography-lessons") is PageSegment.MONEY

    def test_education_beats_money_keywords(self):
        """A blog post about courses is still education."""
        assert classify_page_segment("/blog-on-photography/choosing-a-course") is PageSegment.EDUCATION

    def test_fine_art_galleries_are_system(self):
        assert classify_page_segment("/fine-art-prints") is PageSegment.SYSTEM
        assert classify_page_segment(
            "/photography-services-near-me/framed-fine-art-photography-prints"
        ) is PageSegment.SYSTEM

    def test_support_pages(self):
        assert classify_page_segment("https://www.alanranger.com/") is PageSegment.SUPPORT
        assert classify_page_segment("/contact-us/") is PageSegment.SUPPORT

    def test_everything_else_is_system(self):
        assert classify_page_segment("/terms") is PageSegment.SYSTEM

    def test_missing_url_classifies_as_root(self):
        assert classify_page_segment(None) is PageSegment.SUPPORT

    def test_override_wins(self):
        assert classify_page_segment("/terms", kind_override="Commercial") is PageSegment.MONEY
        assert classify_page_segment("/photography-workshops", kind_override="educational") is PageSegment.EDUCATION

    def test_unknown_override_ignored(self):
        assert classify_page_segment("/photography-workshops", kind_override="banana") is PageSegment.MONEY

    def test_title_does_not_influence(self):
        assert classify_page_segment("/terms", title="Photography Workshops") is PageSegment.SYSTEM

    def test_idempotent(self):
        url = "https://www.alanranger.com/photography-workshops-near-me/"
        assert classify_page_segment(url) is classify_page_segment(url)


class TestMoneySubSegment:
    """Landing / event / product split of money pages."""

    def test_event_pages(self):
        assert classify_money_sub_segment("/beginners-photography-lessons") is MoneySubSegment.EVENT
        assert classify_money_sub_segment("/photographic-workshops-near-me/bluebells") is MoneySubSegment.EVENT

    def test_product_pages(self):
        assert classify_money_sub_segment("/photo-workshops-uk/lake-district") is MoneySubSegment.PRODUCT
        assert classify_money_sub_segment("/photography-services-near-me") is MoneySubSegment.PRODUCT

    def test_landing_is_default(self):
        assert classify_money_sub_segment("/photography-workshops") is MoneySubSegment.LANDING

    def test_non_money_pages_have_no_sub_segment(self):
        assert classify_money_sub_segment("/blog-on-photography/x") is None
        assert classify_money_sub_segment("/terms") is None
        assert classify_money_sub_segment("/fine-art-prints") is None

    def test_is_money_page(self):
        assert is_money_page("/photography-workshops")
        assert not is_money_page("/about-alan-ranger")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
