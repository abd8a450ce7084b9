import tempfile
import unittest
from datetime import timedelta
from pathlib import Path

import httpx

from tasmota_control.accessories import Category, Characteristic, MemorySink, ServiceType
from tasmota_control.collectors import DeviceInfo, DeviceType, RemoteTemperatureClient, TasmotaClient
from tasmota_control.config import DeviceConfig, LogConfig, MiElHvacConfig, RemoteSensorConfig
from tasmota_control.devices import (
    FansController,
    LightsController,
    MiElHvacController,
    SensorsController,
    SwitchesController,
    build_controller,
)
from tasmota_control.devices.base import firmware_digits, scale
from tasmota_control.devices.mielhvac import UnknownModeError, parse_hvac
from tasmota_control.devices.sensors import parse_sensors
from tasmota_control.notifiers import DeviceEventLog
from tasmota_control.storage import SetpointStore


class FakeDevice:
    """Serve canned ``/cm`` responses and record every command."""

    def __init__(self, responses, remote_temperature="21.5"):
        self.responses = responses
        self.remote_temperature = remote_temperature
        self.commands = []
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "sensor.local":
            return httpx.Response(200, text=self.remote_temperature)
        if self.fail:
            raise httpx.ConnectError("unreachable", request=request)
        command = request.url.params["cmnd"]
        self.commands.append(command)
        return httpx.Response(200, json=self.responses.get(command, {}))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_info(device_type, friendly_names=("Lamp",), sensor_names=()):
    return DeviceInfo(
        device_type=device_type,
        device_name="Test Device",
        friendly_names=friendly_names,
        model_name="ESP8266EX",
        serial_number="AA:BB:CC:DD:EE:FF",
        firmware_revision="14.2.0(tasmota)",
        sensor_names=sensor_names,
    )


class ControllerTestCase(unittest.IsolatedAsyncioTestCase):
    def build(self, controller_cls, device, info, config=None, **kwargs):
        config = config or DeviceConfig(name="Test Device", host="device.local")
        client = TasmotaClient(config, transport=device.transport)
        self.addAsyncCleanup(client.close)
        self.sink = MemorySink()
        self.events = DeviceEventLog("device.local", "Test Device", LogConfig(debug=True))
        return controller_cls(client, info, config, self.events, self.sink, **kwargs)


class HelperTests(unittest.TestCase):
    def test_firmware_digits(self):
        self.assertEqual(firmware_digits("14.2.0(tasmota)"), "14.2.0")
        self.assertEqual(firmware_digits("release"), "0")

    def test_scale_is_clamped(self):
        self.assertEqual(scale(153, 153, 500, 140, 500), 140)
        self.assertEqual(scale(500, 153, 500, 140, 500), 500)
        self.assertEqual(scale(900, 153, 500, 140, 500), 500)

    def test_build_controller_picks_class(self):
        self.assertIs(type(build_controller(DeviceType.FAN, None, None, DeviceConfig("f", "f"), None)), FansController)
        with self.assertRaises(ValueError):
            build_controller(99, None, None, None, None)


class SwitchesControllerTests(ControllerTestCase):
    async def test_start_publishes_one_service_per_relay(self):
        device = FakeDevice({"Power0": {"POWER1": "ON", "POWER2": "OFF"}})
        controller = self.build(SwitchesController, device, make_info(DeviceType.SWITCH, ("One", "Two")))

        accessory = await controller.start()

        self.assertEqual(accessory.category, Category.OUTLET)
        info = accessory.get_service("info")
        self.assertEqual(info.characteristics[Characteristic.FIRMWARE_REVISION], "14.2.0")
        self.assertEqual(accessory.get_service("power_0").characteristics[Characteristic.ON], True)
        self.assertEqual(accessory.get_service("power_1").characteristics[Characteristic.ON], False)
        self.assertEqual(len(list(accessory.iter_services(ServiceType.OUTLET))), 2)
        self.assertIn("success", [n.level for n in self.events.history])

    async def test_poll_pushes_changes_only(self):
        device = FakeDevice({"Power0": {"POWER": "OFF"}})
        controller = self.build(SwitchesController, device, make_info(DeviceType.SWITCH))
        await controller.start()
        self.sink.updates.clear()

        await controller.poll()
        self.assertEqual(self.sink.updates, [])

        device.responses["Power0"] = {"POWER": "ON"}
        await controller.poll()
        self.assertEqual(self.sink.values("power_0", Characteristic.ON), [True])

    async def test_set_sends_power_command(self):
        device = FakeDevice({"Power0": {"POWER1": "OFF", "POWER2": "OFF"}})
        config = DeviceConfig(name="Test Device", host="device.local", relays_display_type=1)
        controller = self.build(SwitchesController, device, make_info(DeviceType.SWITCH, ("A", "B")), config)
        accessory = await controller.start()

        await accessory.set("power_1", Characteristic.ON, True)

        self.assertEqual(accessory.category, Category.SWITCH)
        self.assertEqual(device.commands[-1], "Power2 on")

    async def test_guarded_handler_logs_failures(self):
        device = FakeDevice({"Power0": {"POWER": "OFF"}})
        controller = self.build(SwitchesController, device, make_info(DeviceType.SWITCH))
        await controller.start()
        device.fail = True

        handler = controller.handlers()["check_state"]
        with self.assertLogs("tasmota_control.device", level="ERROR"):
            await handler()

        self.assertEqual(self.events.history[-1].level, "error")
        self.assertTrue(self.events.history[-1].message.startswith("Check state error:"))

    async def test_default_tasks(self):
        config = DeviceConfig(name="Test Device", host="device.local", refresh_interval=timedelta(seconds=2))
        controller = self.build(SwitchesController, FakeDevice({}), make_info(DeviceType.SWITCH), config)
        self.assertEqual([(t.name, t.interval_ms) for t in controller.tasks()], [("check_state", 2000)])


class LightsControllerTests(ControllerTestCase):
    async def test_reads_brightness_and_color_temperature(self):
        device = FakeDevice(
            {
                "Power0": {"POWER": "ON"},
                "Status 0": {"StatusSTS": {"POWER": "ON", "Dimmer": 40, "CT": 500, "HSBColor": "120,50,60"}},
            }
        )
        controller = self.build(LightsController, device, make_info(DeviceType.LIGHT))
        accessory = await controller.start()

        characteristics = accessory.get_service("light_0").characteristics
        self.assertEqual(characteristics[Characteristic.ON], True)
        self.assertEqual(characteristics[Characteristic.BRIGHTNESS], 60)
        self.assertEqual(characteristics[Characteristic.COLOR_TEMPERATURE], 500)
        self.assertEqual(characteristics[Characteristic.HUE], 120)
        self.assertEqual(characteristics[Characteristic.SATURATION], 50)

    async def test_setters_send_commands(self):
        device = FakeDevice({"Power0": {"POWER": "OFF"}, "Status 0": {"StatusSTS": {"Dimmer": 10, "CT": 153}}})
        controller = self.build(LightsController, device, make_info(DeviceType.LIGHT))
        accessory = await controller.start()

        await accessory.set("light_0", Characteristic.ON, True)
        await accessory.set("light_0", Characteristic.BRIGHTNESS, 75)
        await accessory.set("light_0", Characteristic.COLOR_TEMPERATURE, 140)

        self.assertEqual(device.commands[-3:], ["Power on", "Dimmer 75", "CT 153"])

    async def test_read_only_characteristic_rejects_writes(self):
        device = FakeDevice({"Power0": {"POWER": "OFF"}, "Status 0": {"StatusSTS": {}}})
        controller = self.build(LightsController, device, make_info(DeviceType.LIGHT))
        accessory = await controller.start()
        with self.assertRaises(KeyError):
            await accessory.set("light_0", Characteristic.HUE, 10)


class FansControllerTests(ControllerTestCase):
    async def test_speed_maps_to_rotation(self):
        device = FakeDevice({"Power0": {"POWER1": "ON"}, "Status 0": {"StatusSTS": {"FanSpeed": 2}}})
        controller = self.build(FansController, device, make_info(DeviceType.FAN))
        accessory = await controller.start()

        fan = accessory.get_service("fan").characteristics
        self.assertEqual(fan[Characteristic.ACTIVE], 1)
        self.assertEqual(fan[Characteristic.ROTATION_SPEED], 67)

        await accessory.set("fan", Characteristic.ROTATION_SPEED, 100)
        await accessory.set("fan", Characteristic.ACTIVE, 0)
        self.assertEqual(device.commands[-2:], ["FanSpeed 3", "FanSpeed 0"])


class SensorsControllerTests(ControllerTestCase):
    async def test_services_per_reading(self):
        device = FakeDevice(
            {
                "Status 0": {
                    "StatusSNS": {
                        "AM2301": {"Temperature": 21.5, "Humidity": 40.0, "DewPoint": 7.4},
                        "SCD40": {"CarbonDioxide": 1200},
                    }
                }
            }
        )
        info = make_info(DeviceType.SENSOR, (), ("AM2301", "SCD40"))
        controller = self.build(SensorsController, device, info)
        accessory = await controller.start()

        self.assertEqual(accessory.get_service("AM2301_temperature").characteristics[Characteristic.CURRENT_TEMPERATURE], 21.5)
        self.assertEqual(
            accessory.get_service("AM2301_humidity").characteristics[Characteristic.CURRENT_RELATIVE_HUMIDITY], 40.0
        )
        co2 = accessory.get_service("SCD40_co2").characteristics
        self.assertEqual(co2[Characteristic.CARBON_DIOXIDE_LEVEL], 1200.0)
        self.assertEqual(co2[Characteristic.CARBON_DIOXIDE_DETECTED], 1)
        self.assertIsNone(accessory.get_service("AM2301_motion"))

    async def test_energy_meter_publishes_power_and_energy(self):
        device = FakeDevice(
            {
                "Status 0": {
                    "StatusSNS": {
                        "Time": "2024-05-01T12:00:00",
                        "ENERGY": {
                            "Power": 120,
                            "ApparentPower": 125,
                            "ReactivePower": 20,
                            "Today": 1.2,
                            "Yesterday": 3.4,
                            "Total": 100.5,
                            "Voltage": 230,
                            "Current": 0.52,
                            "Factor": 0.98,
                        },
                    }
                }
            }
        )
        controller = self.build(SensorsController, device, make_info(DeviceType.SENSOR, (), ("ENERGY",)))
        accessory = await controller.start()

        energy = accessory.get_service("ENERGY_energy")
        self.assertIs(energy.type, ServiceType.POWER_AND_ENERGY)
        values = energy.characteristics
        self.assertEqual(values[Characteristic.POWER], 120.0)
        self.assertEqual(values[Characteristic.APPARENT_POWER], 125.0)
        self.assertEqual(values[Characteristic.REACTIVE_POWER], 20.0)
        self.assertEqual(values[Characteristic.ENERGY_TODAY], 1.2)
        self.assertEqual(values[Characteristic.ENERGY_LAST_DAY], 3.4)
        self.assertEqual(values[Characteristic.ENERGY_LIFETIME], 100.5)
        self.assertEqual(values[Characteristic.VOLTAGE], 230.0)
        self.assertEqual(values[Characteristic.CURRENT], 0.52)
        self.assertEqual(values[Characteristic.FACTOR], 0.98)
        self.assertEqual(values[Characteristic.READING_TIME], "2024-05-01T12:00:00")
        self.assertNotIn(Characteristic.FREQUENCY, values)

        device.responses["Status 0"]["StatusSNS"]["ENERGY"]["Power"] = 0
        await controller.poll()
        self.assertEqual(self.sink.values("ENERGY_energy", Characteristic.POWER), [0.0])

    async def test_extra_temperature_readings(self):
        device = FakeDevice(
            {
                "Status 0": {
                    "StatusSNS": {
                        "MLX90614": {"OBJTMP": 36.6, "AMBTMP": 22.1},
                        "SHT3X": {"Temperature": 20.0, "ReferenceTemperature": 19.5},
                    }
                }
            }
        )
        info = make_info(DeviceType.SENSOR, (), ("MLX90614", "SHT3X"))
        controller = self.build(SensorsController, device, info)
        accessory = await controller.start()

        def temperature(subtype):
            return accessory.get_service(subtype).characteristics[Characteristic.CURRENT_TEMPERATURE]

        self.assertEqual(temperature("MLX90614_obj_temperature"), 36.6)
        self.assertEqual(temperature("MLX90614_amb_temperature"), 22.1)
        self.assertEqual(temperature("SHT3X_temperature"), 20.0)
        self.assertEqual(temperature("SHT3X_reference_temperature"), 19.5)
        self.assertIsNone(accessory.get_service("MLX90614_temperature"))
        self.assertIsNone(accessory.get_service("SHT3X_energy"))

    async def test_initial_values_arrive_with_publish_not_as_updates(self):
        device = FakeDevice({"Status 0": {"StatusSNS": {"AM2301": {"Temperature": 21.5}}}})
        controller = self.build(SensorsController, device, make_info(DeviceType.SENSOR, (), ("AM2301",)))

        accessory = await controller.start()

        self.assertEqual(self.sink.updates, [])
        self.assertIs(accessory.sink, self.sink)
        self.assertEqual(accessory.get_service("AM2301_temperature").characteristics[Characteristic.CURRENT_TEMPERATURE], 21.5)


class ParseSensorsTests(unittest.TestCase):
    def test_pressure_gas_and_energy(self):
        readings = {
            reading.name: reading
            for reading in parse_sensors(
                {
                    "Time": "2024-05-01T12:00:00",
                    "BME680": {"Temperature": 22.0, "Humidity": 41.0, "Pressure": 1013.2, "Gas": 87.5},
                    "ENERGY": {"Power": 5, "Frequency": 50},
                }
            )
        }

        bme = readings["BME680"]
        self.assertEqual((bme.pressure, bme.gas), (1013.2, 87.5))
        self.assertIsNone(bme.energy)
        energy = readings["ENERGY"].energy
        self.assertEqual((energy.power, energy.frequency), (5.0, 50.0))
        self.assertIsNone(energy.total)
        self.assertEqual(energy.reading_time, "2024-05-01T12:00:00")


class ParseHvacTests(unittest.TestCase):
    def test_heating(self):
        state = parse_hvac(
            {
                "MiElHVAC": {
                    "Power": "on",
                    "Mode": "heat",
                    "ModeStatus": "heat",
                    "Temperature": 19.5,
                    "SetTemperature": 22.0,
                    "FanSpeed": "quiet",
                    "SwingV": "swing",
                    "SwingH": "swing",
                }
            }
        )
        self.assertEqual(state.current_operation_mode, 2)
        self.assertEqual(state.target_operation_mode, 1)
        self.assertEqual(state.rotation_speed, 1)
        self.assertEqual(state.swing_mode, 1)

    def test_auto_cooling_and_power_off(self):
        data = {"MiElHVAC": {"Power": "on", "Mode": "auto", "ModeStatus": "auto_cool", "Temperature": 26}}
        state = parse_hvac(data)
        self.assertEqual(state.current_operation_mode, 3)
        self.assertEqual(state.target_operation_mode, 0)
        self.assertEqual(state.rotation_speed, 6)

        data["MiElHVAC"]["Power"] = "off"
        self.assertEqual(parse_hvac(data).current_operation_mode, 0)

    def test_dry_mode_keeps_previous_target(self):
        data = {"MiElHVAC": {"Power": "on", "Mode": "dry", "ModeStatus": "dry", "Temperature": 24}}
        self.assertEqual(parse_hvac(data, previous_target=2).target_operation_mode, 2)

    def test_missing_temperature(self):
        self.assertIsNone(parse_hvac({"MiElHVAC": {"Power": "on"}}))
        self.assertIsNone(parse_hvac({}))

    def test_unknown_mode(self):
        with self.assertRaises(UnknownModeError):
            parse_hvac({"MiElHVAC": {"Mode": "turbo", "Temperature": 20}})


class MiElHvacControllerTests(ControllerTestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.state_dir = Path(tmp.name)

    async def build_hvac(self, mode="auto", mode_status="auto_heat", remote=False):
        self.device = FakeDevice(
            {
                "Status 0": {
                    "StatusSNS": {
                        "MiElHVAC": {
                            "Power": "on",
                            "Mode": mode,
                            "ModeStatus": mode_status,
                            "Temperature": 21.0,
                            "OutdoorTemperature": 5.0,
                            "SetTemperature": 22.0,
                            "FanSpeed": "2",
                        }
                    }
                }
            }
        )
        remote_config = RemoteSensorConfig(url="http://sensor.local/temp", refresh_interval=timedelta(seconds=30))
        config = DeviceConfig(
            name="Test Device",
            host="device.local",
            mielhvac=MiElHvacConfig(
                room_temperature_sensor=True,
                outdoor_temperature_sensor=True,
                remote_temperature_sensor=remote_config if remote else None,
            ),
        )
        store = SetpointStore(self.state_dir, "AA:BB:CC:DD:EE:FF")
        await store.ensure()
        remote_sensor = None
        if remote:
            remote_sensor = RemoteTemperatureClient(remote_config, transport=self.device.transport)
            self.addAsyncCleanup(remote_sensor.close)
        controller = self.build(
            MiElHvacController,
            self.device,
            make_info(DeviceType.MIELHVAC),
            config,
            setpoints=store,
            remote_sensor=remote_sensor,
        )
        self.store = store
        return controller

    async def test_auto_mode_uses_stored_thresholds(self):
        controller = await self.build_hvac()
        accessory = await controller.start()

        hvac = accessory.get_service("hvac").characteristics
        self.assertEqual(accessory.category, Category.AIR_CONDITIONER)
        self.assertEqual(hvac[Characteristic.CURRENT_HEATER_COOLER_STATE], 2)
        self.assertEqual(hvac[Characteristic.TARGET_HEATER_COOLER_STATE], 0)
        self.assertEqual(hvac[Characteristic.HEATING_THRESHOLD_TEMPERATURE], 20.0)
        self.assertEqual(hvac[Characteristic.COOLING_THRESHOLD_TEMPERATURE], 24.0)
        self.assertEqual(hvac[Characteristic.ROTATION_SPEED], 3)
        self.assertEqual(accessory.get_service("room").characteristics[Characteristic.CURRENT_TEMPERATURE], 21.0)
        self.assertEqual(accessory.get_service("outdoor").characteristics[Characteristic.CURRENT_TEMPERATURE], 5.0)

    async def test_auto_threshold_writes_store_and_sends_midpoint(self):
        controller = await self.build_hvac()
        accessory = await controller.start()

        await accessory.set("hvac", Characteristic.COOLING_THRESHOLD_TEMPERATURE, 26)

        self.assertEqual(await self.store.read_cooling(), 26.0)
        self.assertEqual(self.device.commands[-1], "HVACSetTemp 23.0")

    async def test_cool_mode_threshold_is_sent_directly(self):
        controller = await self.build_hvac(mode="cool", mode_status="cool")
        accessory = await controller.start()

        hvac = accessory.get_service("hvac").characteristics
        self.assertEqual(hvac[Characteristic.COOLING_THRESHOLD_TEMPERATURE], 22.0)
        self.assertNotIn(Characteristic.HEATING_THRESHOLD_TEMPERATURE, hvac)

        await accessory.set("hvac", Characteristic.COOLING_THRESHOLD_TEMPERATURE, 25)
        self.assertEqual(self.device.commands[-1], "HVACSetTemp 25.0")
        self.assertEqual(await self.store.read_cooling(), 24.0)

    async def test_mode_and_power_setters(self):
        controller = await self.build_hvac()
        accessory = await controller.start()

        await accessory.set("hvac", Characteristic.TARGET_HEATER_COOLER_STATE, 2)
        await accessory.set("hvac", Characteristic.ACTIVE, 0)
        await accessory.set("hvac", Characteristic.ROTATION_SPEED, 1)
        await accessory.set("hvac", Characteristic.LOCK_PHYSICAL_CONTROLS, 1)

        self.assertEqual(
            self.device.commands[-4:],
            ["HVACSetMode cool", "Power off", "HVACSetFanSpeed quiet", "HVACSetProhibit all"],
        )

    async def test_remote_temperature_task(self):
        controller = await self.build_hvac(remote=True)
        await controller.start()

        tasks = {task.name: task.interval_ms for task in controller.tasks()}
        self.assertEqual(tasks, {"check_state": 5000, "update_remote_temp": 30000})

        await controller.handlers()["update_remote_temp"]()

        self.assertEqual(self.device.commands[-1], "HVACRemoteTemp 21.5")
        self.assertEqual(controller.state.remote_temperature, 21.5)

    async def test_no_remote_task_without_sensor(self):
        controller = await self.build_hvac()
        self.assertEqual([task.name for task in controller.tasks()], ["check_state"])
        self.assertNotIn("update_remote_temp", controller.handlers())


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
