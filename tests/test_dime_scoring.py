import unittest

from control_assurance.core import (
    aggregate_dimensions,
    compute_dime_score,
    constrain_effectiveness,
    normalize_effectiveness,
    raw_dimension_score,
)
from control_assurance.errors import DomainError
from control_assurance.models import (
    ConstrainedBy,
    ControlStatus,
    Criticality,
    Dimension,
    SecondaryControlInstance,
    SecondaryControlTemplate,
    to_control_instance,
)


def _control(code, dimension, criticality, status=None, evidence=None):
    return SecondaryControlInstance(
        id=code,
        template=SecondaryControlTemplate(
            code=code,
            dimension=Dimension(dimension),
            criticality=Criticality(criticality),
        ),
        status=ControlStatus(status) if status else ControlStatus.NOT_ATTESTED,
        evidence_exists=evidence,
    )


def _full_set(status="yes"):
    return [
        _control("D1", "D", "critical", status, True),
        _control("D2", "D", "important", status, True),
        _control("I1", "I", "critical", status, True),
        _control("I2", "I", "important", status, True),
        _control("M1", "M", "critical", status, True),
        _control("M2", "M", "optional", status, True),
        _control("E1", "E", "critical", status, True),
        _control("E2", "E", "important", status, True),
    ]


class DimensionAggregationTests(unittest.TestCase):
    def test_raw_score_is_weighted_average_scaled_to_three(self):
        self.assertAlmostEqual(raw_dimension_score(6.0, 9.0), 2.0)
        self.assertAlmostEqual(raw_dimension_score(2.5, 6.0), 1.25)
        self.assertEqual(raw_dimension_score(0.0, 0.0), 0.0)

    def test_raw_score_stays_in_range(self):
        for weighted_sum, weight_total in ((0.0, 1.0), (1.0, 1.0), (3.0, 6.0), (0.5, 1.0)):
            raw = raw_dimension_score(weighted_sum, weight_total)
            self.assertGreaterEqual(raw, 0.0)
            self.assertLessEqual(raw, 3.0)

    def test_na_and_unattested_are_excluded_with_reason(self):
        result = aggregate_dimensions(
            [
                _control("I1", "I", "critical", "yes", True),
                _control("I2", "I", "important", "na"),
                _control("I3", "I", "optional"),
            ]
        )
        totals = result.totals[Dimension.IMPLEMENTATION]
        self.assertEqual(totals.weight_total, 3.0)
        self.assertEqual(totals.weighted_sum, 3.0)
        self.assertEqual(totals.raw, 3.0)
        reasons = {t.code: t.reason for t in result.controls if not t.included}
        self.assertEqual(reasons, {"I2": "N/A - excluded", "I3": "Not yet attested"})

    def test_partial_answers_count_half(self):
        result = aggregate_dimensions(
            [
                _control("M1", "M", "critical", "partial", True),
                _control("M2", "M", "important", "yes", True),
                _control("M3", "M", "optional", "no", False),
            ]
        )
        totals = result.totals[Dimension.MONITORING]
        self.assertEqual(totals.weighted_sum, 3.5)
        self.assertEqual(totals.weight_total, 6.0)
        self.assertAlmostEqual(totals.raw, 1.75)

    def test_dimension_without_applicable_controls_is_flagged(self):
        result = aggregate_dimensions([_control("D1", "D", "critical", "yes", True)])
        self.assertIn(Dimension.EVALUATION, result.no_applicable_controls)
        self.assertNotIn(Dimension.DESIGN, result.no_applicable_controls)
        self.assertEqual(result.raw(Dimension.EVALUATION), 0.0)

    def test_unknown_status_is_a_domain_error(self):
        with self.assertRaises(DomainError) as ctx:
            to_control_instance({"code": "D1", "dimension": "D", "criticality": "critical", "status": "maybe"})
        self.assertEqual(ctx.exception.code, "invalid_attestation")

    def test_unknown_criticality_is_a_domain_error(self):
        with self.assertRaises(DomainError):
            to_control_instance({"code": "D1", "dimension": "D", "criticality": "severe", "status": "yes"})


class CapAndCascadeTests(unittest.TestCase):
    def test_critical_no_caps_design_at_one(self):
        score = compute_dime_score(
            [
                _control("D1", "D", "critical", "yes", True),
                _control("D2", "D", "critical", "yes", True),
                _control("D3", "D", "critical", "no", False),
            ]
        )
        totals = score.aggregation.totals[Dimension.DESIGN]
        self.assertEqual(totals.weighted_sum, 6.0)
        self.assertEqual(totals.weight_total, 9.0)
        self.assertAlmostEqual(totals.raw, 2.0)
        self.assertEqual(score.d_score, 1.0)
        self.assertTrue(score.cap_details.capped[Dimension.DESIGN])
        self.assertTrue(score.cap_applied)
        self.assertEqual(score.cap_details.codes_for(Dimension.DESIGN), ["D3"])
        self.assertTrue(score.cap_details.to_dict()["d_capped"])

    def test_cap_flag_without_lowering_keeps_cap_applied_false(self):
        score = compute_dime_score(
            [
                _control("I1", "I", "critical", "no", False),
                _control("I2", "I", "optional", "yes", True),
            ]
        )
        self.assertTrue(score.cap_details.capped[Dimension.IMPLEMENTATION])
        self.assertLessEqual(score.i_score, 1.0)
        self.assertFalse(score.cap_applied)

    def test_design_zero_cascade_forces_downstream_to_zero(self):
        controls = _full_set("yes")
        controls[0] = _control("D1", "D", "critical", "no", False)
        controls[1] = _control("D2", "D", "important", "na")
        score = compute_dime_score(controls)
        self.assertTrue(score.cascade_applied)
        self.assertEqual((score.i_score, score.m_score, score.e_final), (0.0, 0.0, 0.0))

    def test_all_design_na_cascades_and_effectiveness_is_zero(self):
        controls = [_control(f"D{n}", "D", "important", "na") for n in range(1, 5)]
        controls += [
            _control("I1", "I", "critical", "yes", True),
            _control("M1", "M", "critical", "yes", True),
            _control("E1", "E", "critical", "yes", True),
        ]
        score = compute_dime_score(controls)
        self.assertTrue(score.cascade_applied)
        self.assertEqual(score.i_score, 0.0)
        self.assertEqual(score.m_score, 0.0)
        self.assertEqual(score.e_final, 0.0)
        effectiveness = normalize_effectiveness(score)
        self.assertTrue(effectiveness.computed)
        self.assertEqual(effectiveness.percentage, 0.0)
        self.assertEqual(effectiveness.label, "Critical")

    def test_cascade_waits_for_every_design_answer(self):
        controls = _full_set("yes")
        controls[0] = _control("D1", "D", "critical", "no", False)
        controls[1] = _control("D2", "D", "important")
        score = compute_dime_score(controls)
        self.assertFalse(score.cascade_applied)
        self.assertEqual(score.i_score, 3.0)

    def test_evaluation_is_constrained_by_weakest_dimension(self):
        e_final, constrained_by = constrain_effectiveness(2.9, 1.0, 2.5, 1.8)
        self.assertEqual(e_final, 1.0)
        self.assertIs(constrained_by, ConstrainedBy.DESIGN)

    def test_evaluation_not_constrained_when_already_lowest(self):
        e_final, constrained_by = constrain_effectiveness(0.5, 1.0, 2.5, 1.8)
        self.assertEqual(e_final, 0.5)
        self.assertIs(constrained_by, ConstrainedBy.NONE)

    def test_final_evaluation_never_exceeds_other_dimensions(self):
        controls = _full_set("yes")
        controls[4] = _control("M1", "M", "critical", "partial", True)
        score = compute_dime_score(controls)
        self.assertLessEqual(score.e_final, min(score.d_score, score.i_score, score.m_score))
        self.assertIs(score.constrained_by, ConstrainedBy.MONITORING)
        self.assertEqual(score.e_raw, 3.0)

    def test_scores_are_deterministic(self):
        controls = _full_set("partial")
        first = compute_dime_score(controls)
        second = compute_dime_score(controls)
        self.assertEqual(
            (first.d_score, first.i_score, first.m_score, first.e_final),
            (second.d_score, second.i_score, second.m_score, second.e_final),
        )

    def test_calc_trace_lists_every_control(self):
        score = compute_dime_score(_full_set("yes"))
        trace = score.calc_trace()
        self.assertEqual(len(trace["secondary_controls"]), 8)
        self.assertEqual(trace["dimension_totals"]["D"]["raw"], 3.0)
        self.assertEqual(trace["constrained_effectiveness"]["constrained_by"], "none")


if __name__ == "__main__":
    unittest.main()
