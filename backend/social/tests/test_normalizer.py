from django.test import SimpleTestCase

from social.normalizer import extract_hashtags, extract_keywords, normalize_post_fields


class HashtagTestCase(SimpleTestCase):

    def test_distinct_lowercase_without_hash(self):
        tags = extract_hashtags("Selling my #Bike today #bike #CYCLING")
        self.assertEqual(tags, ['bike', 'cycling'])

    def test_empty_and_none(self):
        self.assertEqual(extract_hashtags(''), [])
        self.assertEqual(extract_hashtags(None), [])

    def test_word_characters_only(self):
        self.assertEqual(extract_hashtags("#for-sale"), ['for'])


class KeywordTestCase(SimpleTestCase):

    def test_punctuation_stripped_and_case_folded(self):
        keywords = extract_keywords("Hello, WORLD! hello world.")
        self.assertEqual(keywords, ['hello', 'world'])

    def test_short_and_numeric_tokens_dropped(self):
        keywords = extract_keywords("an ox at 2024 for 12345 sale")
        self.assertEqual(keywords, ['for', 'sale'])

    def test_alphanumeric_tokens_kept(self):
        self.assertEqual(extract_keywords("route 66a"), ['66a', 'route'])

    def test_hash_is_stripped_from_keywords(self):
        self.assertIn('bike', extract_keywords("#bike"))


class NormalizePostFieldsTestCase(SimpleTestCase):

    def test_recomputed_not_merged(self):
        before = normalize_post_fields("old #first tag")
        after = normalize_post_fields("new #second tag")
        self.assertEqual(before['hashtags'], ['first'])
        self.assertEqual(after['hashtags'], ['second'])
        self.assertNotIn('first', after['keywords'])
