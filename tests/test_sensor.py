from __future__ import annotations

from custom_components.ipfire_traffic.sensor import kb_per_second


def test_kb_per_second_scales_client_rate() -> None:
    assert kb_per_second(1.0) == 1000.0
    assert kb_per_second(0.2) == 200.0
    assert kb_per_second(0.0) == 0.0


def test_kb_per_second_keeps_counter_reset_visible() -> None:
    assert kb_per_second(-4.0) == -4000.0
    assert kb_per_second(-1.0) == -1000.0
