from __future__ import annotations

import json
import logging
import unittest

from hys_backend.logging_utils import JsonFormatter, redact_secrets


class LoggingUtilsTests(unittest.TestCase):
    def test_redact_secrets_masks_credential_params(self) -> None:
        url = "http://enibra.test/PersonelListesi.doms?MUSTERI_KODU=C100&PAROLA=s3cret&aktif=1"

        self.assertEqual(
            redact_secrets(url),
            "http://enibra.test/PersonelListesi.doms?MUSTERI_KODU=***&PAROLA=***&aktif=1",
        )

    def test_formatter_emits_json_with_extra_fields(self) -> None:
        record = logging.LogRecord(
            name="hys_backend.enibra",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="enibra_upstream_failed",
            args=(),
            exc_info=None,
        )
        record.url = "http://enibra.test/x?parola=abc"
        record.upstream_status = 503

        payload = json.loads(JsonFormatter(service="hys-backend").format(record))

        self.assertEqual(payload["level"], "WARNING")
        self.assertEqual(payload["logger"], "hys_backend.enibra")
        self.assertEqual(payload["message"], "enibra_upstream_failed")
        self.assertEqual(payload["service"], "hys-backend")
        self.assertEqual(payload["url"], "http://enibra.test/x?parola=***")
        self.assertEqual(payload["upstream_status"], 503)


if __name__ == "__main__":
    unittest.main()
