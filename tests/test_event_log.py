import logging
import unittest

from tasmota_control.config import DeviceConfig, LogConfig
from tasmota_control.notifiers import SUCCESS, DeviceEventLog


class DeviceEventLogTests(unittest.TestCase):
    def test_messages_are_prefixed_with_host_and_name(self):
        events = DeviceEventLog("192.168.1.20", "Plug")
        with self.assertLogs("tasmota_control.device", level="INFO") as logs:
            events.info("state: ON")
            events.success("Connect Success")

        self.assertEqual(
            logs.output,
            [
                "INFO:tasmota_control.device:Device: 192.168.1.20 Plug, state: ON",
                "SUCCESS:tasmota_control.device:Device: 192.168.1.20 Plug, Connect Success",
            ],
        )
        self.assertEqual(logs.records[1].levelno, SUCCESS)

    def test_disabled_levels_are_dropped(self):
        flags = LogConfig(info=False, device_info=False, debug=False)
        events = DeviceEventLog("plug", "Plug", flags)
        with self.assertLogs("tasmota_control.device", level="DEBUG") as logs:
            events.info("hidden")
            events.dev_info("hidden banner")
            events.debug("hidden debug")
            events.warn("visible")

        self.assertEqual(len(logs.records), 1)
        self.assertEqual(logs.records[0].levelno, logging.WARNING)
        self.assertEqual([n.level for n in events.history], ["warn"])

    def test_for_device_uses_config_flags(self):
        config = DeviceConfig(name="Lamp", host="lamp", log=LogConfig(debug=True))
        events = DeviceEventLog.for_device(config)
        self.assertTrue(events.debug_enabled)

    def test_history_is_bounded(self):
        events = DeviceEventLog("plug", "Plug", base_logger=logging.getLogger("tests.event_log"))
        logging.getLogger("tests.event_log").disabled = True
        self.addCleanup(setattr, logging.getLogger("tests.event_log"), "disabled", False)
        for index in range(150):
            events.error(f"failure {index}")

        self.assertEqual(len(events.history), 100)
        self.assertEqual(events.history[-1].message, "failure 149")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
