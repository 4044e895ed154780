import pytest

from bidding_api.utils.slug import next_free_slug, slugify


@pytest.mark.unit
class TestSlugify:
    @pytest.mark.parametrize(
        "title, expected",
        [
            ("Old Chair", "old-chair"),
            ("  Old   Chair  ", "old-chair"),
            ("Don't Panic!", "dont-panic"),
            ("Mr. Smith's (1998) *Portrait*", "mr-smiths-1998-portrait"),
            ("Café Crème", "cafe-creme"),
            ("Oil/Canvas & Gold", "oilcanvas-and-gold"),
            ("Rock/Paper", "rockpaper"),
            ("mid_century", "midcentury"),
            ("Tom & Jerry", "tom-and-jerry"),
            ("50% Off", "50percent-off"),
            ("Pen - Ink -- Wash", "pen-ink-wash"),
            ("Straße", "strasse"),
            ("email@host: A+B~C", "emailhost-abc"),
        ],
    )
    def test_slugify(self, title, expected):
        assert slugify(title) == expected

    def test_unsluggable_title_falls_back_to_random_token(self):
        slug = slugify("!!!")

        assert len(slug) == 32
        assert slug.isalnum()


@pytest.mark.unit
class TestNextFreeSlug:
    def test_base_when_free(self):
        assert next_free_slug("old-chair", []) == "old-chair"

    def test_first_suffix_when_base_taken(self):
        assert next_free_slug("old-chair", ["old-chair"]) == "old-chair-1"

    def test_sequential_suffixes(self):
        taken = ["old-chair", "old-chair-1", "old-chair-2"]

        assert next_free_slug("old-chair", taken) == "old-chair-3"

    def test_fills_first_gap(self):
        taken = ["old-chair", "old-chair-2"]

        assert next_free_slug("old-chair", taken) == "old-chair-1"

    def test_unrelated_slugs_with_same_prefix_are_ignored(self):
        taken = ["old-chair", "old-chair-set", "old-chair-1x"]

        assert next_free_slug("old-chair", taken) == "old-chair-1"
