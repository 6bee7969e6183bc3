"""
Optimizer 改寫規則單元測試 — memo 包裝、button aria-label、idempotence
"""
from design_sync.optimizer import (
    ARIA_LABEL_RULE,
    MEMO_RULE,
    RuleBasedOptimizer,
    optimize,
)

REACT_SOURCE = """import React from 'react';

export const PrimaryButton: React.FC<PrimaryButtonProps> = ({ className }) => {
  return (
    <div className={className}>
      <button type="button">Go</button>
      <button aria-label="Close">x</button>
    </div>
  );
};

export default PrimaryButton;
"""


def test_memo_rule_wraps_component_and_balances_parens():
    code, applied = MEMO_RULE.apply(REACT_SOURCE)
    assert applied
    assert "= React.memo(({ className }) => {" in code
    assert "});\n\nexport default PrimaryButton;" in code
    assert code.count("(") == code.count(")")


def test_aria_rule_only_touches_unlabeled_buttons():
    code, applied = ARIA_LABEL_RULE.apply(REACT_SOURCE)
    assert applied
    assert '<button type="button" aria-label="Button">' in code
    assert '<button aria-label="Close">' in code
    assert code.count("aria-label") == 2


def test_optimizer_reports_only_applied_rules():
    result = optimize(REACT_SOURCE)
    assert result.changed
    assert [i.type for i in result.improvements] == ["performance", "accessibility"]
    assert result.improvements[1].to_dict()["autoFixed"] is True


def test_optimizer_is_idempotent():
    once = optimize(REACT_SOURCE)
    twice = optimize(once.optimized_code)
    assert twice.optimized_code == once.optimized_code
    assert twice.improvements == ()
    assert not twice.changed


def test_plain_html_is_untouched():
    html = "<div>\n  <span>Hello</span>\n</div>\n"
    result = RuleBasedOptimizer().optimize(html)
    assert result.optimized_code == html
    assert not result.changed


def test_custom_rule_set():
    result = RuleBasedOptimizer(rules=[ARIA_LABEL_RULE]).optimize(REACT_SOURCE)
    assert "React.memo" not in result.optimized_code
    assert len(result.improvements) == 1


def test_aria_rule_labels_role_button_elements():
    jsx = '<div className="cta" role="button" tabIndex={0} />\n<div role="button" aria-label="Save">ok</div>\n'
    code, applied = ARIA_LABEL_RULE.apply(jsx)
    assert applied
    assert '<div className="cta" role="button" tabIndex={0} aria-label="Button" />' in code
    assert '<div role="button" aria-label="Save">' in code


def test_memo_rule_accepts_untyped_component():
    source = "export const Card = ({ className }) => {\n  return null;\n};\n\nexport default Card;\n"
    code, applied = MEMO_RULE.apply(source)
    assert applied
    assert code.startswith("export const Card = React.memo(({ className }) => {")
    assert code.endswith("});\n\nexport default Card;\n")
