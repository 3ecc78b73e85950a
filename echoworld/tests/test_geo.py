import time
import unittest
from unittest.mock import patch

from echoworld import geo
from echoworld.centroids import get_country_centroid, has_country_centroid
from echoworld.db import Database, EchoRow
from echoworld.tests.helpers import make_echo, make_user


class BBoxTests(unittest.TestCase):
    def test_world_detection(self):
        self.assertTrue(geo.is_world_bbox(geo.WORLD_BBOX))
        self.assertFalse(geo.is_world_bbox((-10, 40, 10, 50)))

    def test_clamps_and_reorders(self):
        self.assertEqual(
            geo.normalize_bbox((-200, 60, 200, -95)), [(-180.0, -85.0, 180.0, 60.0)]
        )

    def test_antimeridian_split(self):
        self.assertEqual(
            geo.normalize_bbox((170, -10, -170, 10)),
            [(170.0, -10.0, 180.0, 10.0), (-180.0, -10.0, -170.0, 10.0)],
        )


class FeatureTests(unittest.TestCase):
    def test_dedup_and_invalid_points(self):
        rows = [
            {"id": "a", "lng": 1.0, "lat": 2.0, "title": "A"},
            {"id": "a", "lng": 1.0, "lat": 2.0, "title": "dup"},
            {"id": "b", "lng": None, "lat": 2.0},
            {"id": "c", "lng": float("nan"), "lat": 2.0},
            {"id": None, "lng": 1.0, "lat": 2.0},
        ]
        features = geo.rows_to_features(rows)
        self.assertEqual(len(features), 1)
        self.assertEqual(features[0]["geometry"], {"type": "Point", "coordinates": [1.0, 2.0]})
        self.assertEqual(features[0]["properties"]["title"], "A")


class MapQueryTests(unittest.TestCase):
    def setUp(self):
        self.db = Database.in_memory()
        self.user = make_user(self.db)

    def test_bbox_query_filters_visibility_and_location(self):
        paris = make_echo(self.db, self.user, lng=2.35, lat=48.85, city="Paris", country="France")
        make_echo(self.db, self.user, lng=2.3, lat=48.8, visibility="private")
        make_echo(self.db, self.user, lng=2.3, lat=48.8, status="draft")
        make_echo(self.db, self.user)

        collection = geo.get_echoes_for_map(self.db, (0, 45, 5, 50))
        self.assertEqual(collection["type"], "FeatureCollection")
        self.assertEqual([f["properties"]["id"] for f in collection["features"]], [paris.id])
        self.assertEqual(collection["features"][0]["properties"]["city"], "Paris")

    def test_emotion_filter(self):
        make_echo(self.db, self.user, lng=2.35, lat=48.85, emotion="joy")
        hope = make_echo(self.db, self.user, lng=2.36, lat=48.86, emotion="hope")
        collection = geo.get_echoes_for_map(self.db, (0, 45, 5, 50), emotion="hope")
        self.assertEqual([f["properties"]["id"] for f in collection["features"]], [hope.id])

    def test_world_view_only_shows_last_hour(self):
        recent = make_echo(self.db, self.user, lng=10.0, lat=10.0)
        old = make_echo(self.db, self.user, lng=11.0, lat=11.0)
        with self.db.Session() as session:
            session.get(EchoRow, old.id).created_at = time.time() - 2 * 3600
            session.commit()
        ids = [f["properties"]["id"] for f in geo.get_echoes_for_map(self.db)["features"]]
        self.assertEqual(ids, [recent.id])

    def test_bbox_across_antimeridian(self):
        east = make_echo(self.db, self.user, lng=175.0, lat=0.0)
        west = make_echo(self.db, self.user, lng=-175.0, lat=0.0)
        make_echo(self.db, self.user, lng=0.0, lat=0.0)

        collection = geo.get_echoes_for_map(self.db, (170, -10, -170, 10))
        ids = [f["properties"]["id"] for f in collection["features"]]
        self.assertEqual(sorted(ids), sorted([east.id, west.id]))

        make_echo(self.db, self.user, lng=176.0, lat=1.0)
        with patch.object(geo, "LIMIT", 2):
            collection = geo.get_echoes_for_map(self.db, (170, -10, -170, 10))
        lngs = sorted(f["geometry"]["coordinates"][0] for f in collection["features"])
        self.assertEqual(len(lngs), 2)
        self.assertEqual(lngs[0], -175.0)

    def test_empty_viewport_falls_back_to_world(self):
        recent = make_echo(self.db, self.user, lng=10.0, lat=10.0)
        collection = geo.get_echoes_for_map(self.db, (100, -10, 110, 0))
        self.assertEqual([f["properties"]["id"] for f in collection["features"]], [recent.id])


class CountryAggregationTests(unittest.TestCase):
    def test_build_aggregations(self):
        rows = [
            {"country": "France", "total_count": 0, "emotion_joy": 2, "emotion_hope": 1},
            {"country": "Atlantis", "total_count": 5, "emotion_joy": 5},
            {"country": "Japan", "total_count": 0},
            {"country": "", "total_count": 3},
        ]
        result = geo.build_country_aggregations(rows)
        self.assertEqual(len(result), 1)
        france = result[0]
        self.assertEqual(france["total_count"], 3)
        self.assertEqual(france["centroid"], list(get_country_centroid("France")))
        self.assertEqual(france["emotion_percentages"]["joy"], 67)
        self.assertEqual(france["emotion_percentages"]["hope"], 33)
        self.assertEqual(france["dominant_emotion"], "joy")

    def test_dominant_emotion_ties_and_empty(self):
        self.assertEqual(geo.dominant_emotion({"peace": 2, "hope": 2, "joy": 1}), "hope")
        self.assertEqual(geo.dominant_emotion({"peace": 0, "hope": 0}), "joy")

    def test_percentages_round_half_up(self):
        counts = {key: 0 for key in geo.EMOTION_KEYS}
        counts["joy"] = 1
        counts["hope"] = 7
        percentages = geo.emotion_percentages(counts, 8)
        self.assertEqual(percentages["joy"], 13)
        self.assertEqual(percentages["hope"], 88)

    def test_query_groups_by_country(self):
        db = Database.in_memory()
        user = make_user(db)
        make_echo(db, user, lng=2.35, lat=48.85, country="France", emotion="joy")
        make_echo(db, user, lng=4.83, lat=45.76, country="France", emotion="peace")
        make_echo(db, user, lng=139.7, lat=35.7, country="Japan", emotion="wonder")
        make_echo(db, user, lng=139.7, lat=35.7, country="Japan", visibility="private")

        result = {
            row["country"]: row
            for row in geo.get_echoes_aggregated_by_country(db, geo.WORLD_BBOX)
        }
        self.assertEqual(set(result), {"France", "Japan"})
        self.assertEqual(result["France"]["total_count"], 2)
        self.assertEqual(result["France"]["emotion_counts"]["peace"], 1)
        self.assertEqual(result["Japan"]["dominant_emotion"], "wonder")

    def test_centroid_lookup(self):
        self.assertTrue(has_country_centroid("Japan"))
        self.assertFalse(has_country_centroid("Atlantis"))
        self.assertIsNone(get_country_centroid("Atlantis"))


if __name__ == "__main__":
    unittest.main()
