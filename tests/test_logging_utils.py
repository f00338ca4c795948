import logging
import unittest

from utils import logging_utils
from utils.logging_utils import build_logging_config, get_tagged_logger, mask_url_secrets


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        self.records.append(record)


class TestLoggingUtils(unittest.TestCase):
    def test_build_logging_config_has_expected_handlers_and_filters(self):
        cfg = build_logging_config(job_name="jobtest")
        self.assertIn("stdout", cfg["handlers"])
        self.assertIn("stderr", cfg["handlers"])
        self.assertEqual(cfg["filters"]["record_fields"]["job_name"], "jobtest")
        self.assertEqual(cfg["handlers"]["stderr"]["level"], "WARNING")
        self.assertEqual(cfg["loggers"]["urllib3"]["level"], "WARNING")

    def test_get_tagged_logger_injects_tag(self):
        handler = _ListHandler()
        logger = get_tagged_logger("routewind.test_module", tag="custom_tag")
        base_logger = logger.logger
        base_logger.setLevel(logging.DEBUG)
        base_logger.addHandler(handler)
        base_logger.propagate = False
        try:
            logger.info("hello world")
        finally:
            base_logger.removeHandler(handler)
            base_logger.propagate = True

        self.assertEqual(handler.records[-1].tag, "custom_tag")

    def test_call_site_extra_is_kept(self):
        handler = _ListHandler()
        logger = get_tagged_logger("routewind.extra_check")
        base_logger = logger.logger
        base_logger.setLevel(logging.DEBUG)
        base_logger.addHandler(handler)
        base_logger.propagate = False
        try:
            logger.info("fetched", extra={"key": "1.0000,2.0000"})
        finally:
            base_logger.removeHandler(handler)
            base_logger.propagate = True

        record = handler.records[-1]
        self.assertEqual(record.key, "1.0000,2.0000")
        self.assertEqual(record.tag, "extra_check")

    def test_tag_defaults_to_last_name_segment(self):
        logger = get_tagged_logger("routewind.wind_service")
        self.assertEqual(logger.extra["tag"], "wind_service")

    def test_filter_fills_missing_fields(self):
        record = logging.LogRecord("uvicorn.error", logging.INFO, __file__, 1, "msg", None, None)
        logging_utils.RecordFieldsFilter("routewind-api").filter(record)
        self.assertEqual(record.tag, "error")
        self.assertEqual(record.job_name, "routewind-api")

    def test_max_level_filter(self):
        f = logging_utils.MaxLevelFilter(logging.INFO)
        info = logging.LogRecord("x", logging.INFO, __file__, 1, "m", None, None)
        warn = logging.LogRecord("x", logging.WARNING, __file__, 1, "m", None, None)
        self.assertTrue(f.filter(info))
        self.assertFalse(f.filter(warn))

    def test_setup_logging_override_applies_filters(self):
        root = logging.getLogger()
        orig_handlers = root.handlers[:]
        orig_level = root.level
        try:
            logging_utils.setup_logging(level="INFO", job_name="jobtest", override_existing=True)
            self.assertTrue(
                any(
                    any(f.__class__.__name__ == "RecordFieldsFilter" for f in h.filters)
                    for h in root.handlers
                )
            )
        finally:
            root.handlers = orig_handlers
            root.setLevel(orig_level)
            logging_utils._CONFIGURED = False  # reset for other tests


class TestMaskUrlSecrets(unittest.TestCase):
    def test_masks_api_key_query_param(self):
        url = "https://customer-api.open-meteo.com/v1/forecast?latitude=1.5&apikey=abc"
        self.assertEqual(
            mask_url_secrets(url),
            "https://customer-api.open-meteo.com/v1/forecast?latitude=1.5&apikey=***",
        )

    def test_masks_only_sensitive_params(self):
        url = "https://host/path?token=t&foo=bar&API_KEY=xyz"
        self.assertEqual(mask_url_secrets(url), "https://host/path?token=***&foo=bar&API_KEY=***")

    def test_keeps_commas_in_other_params(self):
        url = "https://host/v1/forecast?hourly=wind_speed_10m,wind_direction_10m"
        self.assertEqual(mask_url_secrets(url), url)

    def test_leaves_urls_without_query(self):
        url = "https://api.open-meteo.com/v1/elevation"
        self.assertEqual(mask_url_secrets(url), url)

    def test_leaves_plain_strings(self):
        self.assertEqual(mask_url_secrets("not a url"), "not a url")


if __name__ == "__main__":
    unittest.main()
