import pytest

from zkvote.curves import (
    BN254_BJJ, BabyJubJub, from_rte_to_te, from_te_to_rte, new_point, reduced_params,
    validate_point,
)
from zkvote.errors import CurveError, DecodeError

P = BN254_BJJ.p


def test_generator_on_curve_and_order():
    g = BabyJubJub.generator()
    assert g.is_on_curve()
    assert BabyJubJub().scalar_mult(BabyJubJub.order(), g).is_identity()
    assert not BabyJubJub().scalar_mult(BabyJubJub.order() - 1, g).is_identity()


def test_new_is_identity():
    g = BabyJubJub.generator()
    zero = new_point("bn254")
    assert zero.point() == (0, 1)
    assert BabyJubJub().safe_add(zero, g) == g
    assert BabyJubJub().safe_add(g, g.neg()).is_identity()


def test_safe_add_matches_scalar_mult():
    g = BabyJubJub.generator()
    two_g = BabyJubJub().safe_add(g, g)
    three_g = BabyJubJub().safe_add(two_g, g)
    assert three_g == 3 * g
    assert three_g - g == two_g


def test_safe_add_stores_result_in_place():
    g = BabyJubJub.generator()
    p = BabyJubJub()
    result = p.safe_add(g, g)
    assert result is p
    assert p == 2 * g


def test_safe_add_rejects_off_curve_operand():
    g = BabyJubJub.generator()
    bad = BabyJubJub(1, 2)
    with pytest.raises(CurveError):
        BabyJubJub().safe_add(g, bad)


def test_reduced_form_conversion_is_invertible():
    for k in (1, 2, 12345, BabyJubJub.order() - 1):
        p = k * BabyJubJub.generator()
        x, y = p.point()
        assert from_rte_to_te(*from_te_to_rte(x, y)) == (x, y)


def test_reduced_coordinates_lie_on_reduced_curve():
    a2, d2 = reduced_params()
    assert a2 == P - 1
    x, y = from_te_to_rte(*(7 * BabyJubJub.generator()).point())
    left = (a2 * x * x + y * y) % P
    right = (1 + d2 * x * x * y * y) % P
    assert left == right


def test_set_point_takes_reduced_coordinates():
    p = 99 * BabyJubJub.generator()
    rx, ry = from_te_to_rte(*p.point())
    assert BabyJubJub().set_point(rx, ry) == p
    # les coordonnées natives ne sont pas acceptées par set_point
    with pytest.raises(CurveError):
        BabyJubJub().set_point(*p.point())


def test_set_point_rejects_out_of_field():
    with pytest.raises(DecodeError):
        BabyJubJub().set_point(P, 1)


def test_validate_point():
    g = BabyJubJub.generator()
    assert validate_point(g.x, g.y)
    assert not validate_point(g.x, g.y + 1)


def test_unknown_curve_type():
    with pytest.raises(ValueError):
        new_point("bls12-377")


def test_str():
    assert str(BabyJubJub()) == "(0, 1)"
