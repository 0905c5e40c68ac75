# tests/test_config.py
import pytest

from cpusim_core import parse_byte_size, parse_memory_map_config, parse_run_config, RunConfig
from cpusim_core.execution import ConfigParsingError


class TestParseByteSize:

    @pytest.mark.parametrize("value, expected", [
        (0, 0),
        (4096, 4096),
        ("4096", 4096),
        ("1 KiB", 1024),
        ("4 KiB", 4096),
        ("2 kB", 2000),
        ("64 bit", 8),
        ("1 MiB", 1 << 20),
        ("16 B", 16),
        ("2 byte", 2),
    ])
    def test_valid_sizes(self, value, expected):
        assert parse_byte_size(value) == expected

    @pytest.mark.parametrize("value", ["3 bit", "1 meter", "-4", -1, True, "lots", "4 percent", "2 byte ** 2"])
    def test_invalid_sizes(self, value):
        with pytest.raises(ValueError):
            parse_byte_size(value)


class TestParseMemoryMapConfig:

    def test_full_configuration(self):
        memory_map = parse_memory_map_config({
            'rom_offset': 0,
            'rom_size': '1 KiB',
            'rom_image': 'deadbeef',
            'ram_offset': '0x1000',
            'ram_size': '4 KiB',
            'io_offset': 0x8000,
            'io_size': 16,
        })
        assert memory_map.rom.shape[0] == 1024
        assert memory_map.ram_offset == 0x1000
        assert memory_map.ram.shape[0] == 4096
        assert memory_map.io_offset == 0x8000
        assert memory_map.read(0, 4) == 0xefbeadde
        assert memory_map.read(4, 4) == 0

    def test_rom_is_sized_to_the_image(self):
        memory_map = parse_memory_map_config({'rom_image': [1, 2, 3], 'ram_offset': 16, 'ram_size': 16})
        assert memory_map.rom.shape[0] == 3
        assert memory_map.read(0, 2) == 0x0201

    def test_empty_configuration(self):
        assert parse_memory_map_config(None).regions == []

    @pytest.mark.parametrize("raw, message", [
        ({'rom_sise': 16}, "Unknown memory map configuration key"),
        ({'ram_size': '1 meter'}, "expected a memory size"),
        ({'ram_offset': '0xzz', 'ram_size': 4}, "Failed to parse"),
        ({'rom_size': 16, 'ram_offset': 8, 'ram_size': 16}, "overlap"),
        ({'rom_size': 2, 'rom_image': 'deadbeef'}, "does not fit"),
        ({'ram_offset': -4, 'ram_size': 4}, "non-negative"),
        ({'rom_image': 'not hex'}, "Failed to parse"),
    ])
    def test_invalid_configurations(self, raw, message):
        with pytest.raises(ConfigParsingError, match=message):
            parse_memory_map_config(raw)

    def test_configuration_must_be_a_mapping(self):
        with pytest.raises(ConfigParsingError, match="mapping"):
            parse_memory_map_config([('ram_size', 4)])


class TestParseRunConfig:

    def test_defaults(self):
        assert parse_run_config(None) == RunConfig(max_ticks=1, halt_on_error=False)
        assert parse_run_config({}) == RunConfig()

    def test_values(self):
        assert parse_run_config({'max_ticks': 500, 'halt_on_error': True}) == RunConfig(max_ticks=500, halt_on_error=True)

    @pytest.mark.parametrize("raw", [
        {'max_ticks': -1},
        {'max_ticks': 2.5},
        {'max_ticks': True},
        {'max_ticks': 'many'},
        {'halt_on_error': 'yes'},
    ])
    def test_invalid_values(self, raw):
        with pytest.raises(ConfigParsingError):
            parse_run_config(raw)

    def test_configuration_must_be_a_mapping(self):
        with pytest.raises(ConfigParsingError):
            parse_run_config(10)


class TestMemorySizesInBytes:

    def test_quantities_are_converted_to_bytes(self):
        memory_map = parse_memory_map_config({'ram_offset': '0x100', 'ram_size': '1 KiB', 'io_offset': 0x1000, 'io_size': '64 bit'})
        assert memory_map.ram.shape[0] == 1024
        assert memory_map.io.shape[0] == 8
        memory_map.write(0x100 + 1020, 0xcafe, 4)
        assert memory_map.read(0x100 + 1020, 4) == 0xcafe
