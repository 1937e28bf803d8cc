import numpy as np
import pytest

from Forage3d.constants import EMPTY_FLOWER_COLOR, FULL_FLOWER_COLOR
from Forage3d.env.errors import DuplicateContactError, ResourceNotFoundError
from Forage3d.env.layout import default_layout
from Forage3d.env.resources import NectarResource, ResourceArea

UP = (0.0, 0.0, -1.0)


def test_feed_returns_amount_taken_and_clamps_at_zero():
    flower = NectarResource((0, 1, 0), UP)
    assert flower.feed(0.01) == pytest.approx(0.01)
    assert flower.quantity == pytest.approx(0.99)

    flower.feed(0.985)
    taken = flower.feed(0.01)
    assert taken == pytest.approx(0.005)
    assert flower.quantity == 0.0
    assert not flower.has_nectar
    assert flower.feed(0.01) == 0.0


def test_negative_feed_takes_nothing():
    flower = NectarResource((0, 1, 0), UP)
    assert flower.feed(-0.5) == 0.0
    assert flower.quantity == 1.0


def test_running_dry_notifies_listeners_once(fake_physics, make_area):
    area = make_area([((0, 1, 0), UP)])
    contact_id = area.get(0).contact_id

    area.feed(contact_id, 2.0)
    area.feed(contact_id, 0.01)

    assert fake_physics.events == [
        ("deactivated", contact_id),
        ("color", contact_id, EMPTY_FLOWER_COLOR),
    ]


def test_reset_refills_and_reactivates(fake_physics, make_area):
    area = make_area([((0, 1, 0), UP)])
    flower = area.get(0)
    flower.feed(1.0)
    fake_physics.events.clear()

    flower.reset()

    assert flower.quantity == 1.0
    assert flower.active
    assert fake_physics.events == [
        ("activated", flower.contact_id),
        ("color", flower.contact_id, FULL_FLOWER_COLOR),
    ]


def test_register_assigns_ids_in_order(fake_physics, make_area):
    area = make_area([((0, 1, 0), UP), ((1, 1, 0), UP), ((2, 1, 0), UP)])
    assert len(area) == 3
    assert [r.resource_id for r in area] == [0, 1, 2]
    for resource in area:
        assert area.lookup(resource.contact_id) is resource


def test_duplicate_contact_id_is_rejected():
    area = ResourceArea()
    area.register(NectarResource((0, 1, 0), UP), "a")
    with pytest.raises(DuplicateContactError):
        area.register(NectarResource((1, 1, 0), UP), "a")
    # Still a KeyError for callers that only know the builtin
    with pytest.raises(KeyError):
        area.register(NectarResource((1, 1, 0), UP), "a")
    assert len(area) == 1


def test_second_contact_id_is_an_alias():
    area = ResourceArea()
    flower = NectarResource((0, 1, 0), UP)
    area.register(flower, "nectar")
    area.register(flower, "nectar-collider-2")

    assert len(area) == 1
    assert area.lookup("nectar-collider-2") is flower
    assert flower.contact_id == "nectar"


def test_lookup_of_unknown_contact_raises():
    area = ResourceArea()
    area.register(NectarResource((0, 1, 0), UP), "a")
    with pytest.raises(ResourceNotFoundError):
        area.lookup("b")
    with pytest.raises(ResourceNotFoundError):
        area.feed("b", 0.01)


def test_reset_all_refills_every_flower(make_area, rng):
    area = make_area([((0, 1, 0), UP), ((1, 1, 0), UP)])
    for flower in area:
        flower.feed(0.7)
    assert area.total_nectar() == pytest.approx(0.6)

    area.reset_all(rng)

    assert all(flower.quantity == 1.0 for flower in area)
    assert area.any_nectar()
    assert area.total_nectar() == pytest.approx(2.0)


def test_reset_all_rotates_flowers_about_their_pivot():
    pivot = np.array([3.0, 0.0, 0.0])
    flower = NectarResource((3.0, 1.0, 0.5), (0.0, 0.3, 1.0), pivot=pivot)
    area = ResourceArea()
    area.register(flower, "a")
    rest_offset = np.linalg.norm(flower.base_position - pivot)

    area.reset_all(np.random.default_rng(7))

    assert np.linalg.norm(flower.position - pivot) == pytest.approx(rest_offset)
    assert np.linalg.norm(flower.up) == pytest.approx(1.0)
    # Tilt is small, so the flower stays roughly at the same height
    assert flower.position[1] == pytest.approx(1.0, abs=0.1)


def test_reset_all_is_reproducible_for_a_seed():
    specs = default_layout(seed=3)

    def positions(seed):
        area = ResourceArea()
        for i, spec in enumerate(specs):
            area.register(NectarResource(spec.position, spec.up, pivot=spec.pivot), i)
        area.reset_all(np.random.default_rng(seed))
        return np.array([r.position for r in area])

    np.testing.assert_allclose(positions(11), positions(11))
    assert not np.allclose(positions(11), positions(12))


def test_populate_registers_layout_and_subscribes_physics(fake_physics, rng):
    specs = default_layout(seed=0, num_plants=2, flowers_per_plant=3)
    area = ResourceArea()
    area.populate(specs, fake_physics)

    assert len(area) == 6
    area.reset_all(rng)
    moved = [event for event in fake_physics.events if event[0] == "moved"]
    assert len(moved) == 6
