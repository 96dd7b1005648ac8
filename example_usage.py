"""
Example: Running the Fund Quant Decision Engine
===============================================

This example evaluates funds on synthetic data, so it runs offline.
"""

import logging
from fund_quant import (
    StrategyEngine,
    EngineConfig,
    FundInput,
    FundStrategyRunner,
    MockFundSource,
    QuantScorer,
    ValuationExplainer,
    summarize
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def example_single_fund():
    """
    Example: One Fund Through the Engine

    Builds a FundInput by hand and prints the main results.
    """
    print("\n" + "="*60)
    print("SINGLE FUND EXAMPLE")
    print("="*60 + "\n")

    source = MockFundSource(names={'110022': '易方达消费行业股票'})
    snapshot = source.fetch_estimate('110022')
    history = source.fetch_history('110022', 360)

    engine = StrategyEngine()
    outcome = engine.evaluate(FundInput(
        code=snapshot.code,
        name=snapshot.name,
        history=history,
        gsz=snapshot.gsz,
        dwjz=snapshot.dwjz
    ))

    if outcome.result is None:
        print(f"{outcome.code}: {outcome.status.value} ({outcome.reason})")
        return

    result = outcome.result
    print(f"Fund: {outcome.code} {outcome.name} [{result.fund_type.type_name}]")
    print(f"Composite score: {result.metrics.composite}")
    print(f"Valuation: {result.valuation.label} (position {result.valuation.position})")
    print(f"Best signal: {result.best_signal.assessment.key if result.best_signal else '-'} "
          f"({result.best_signal_tier or '-'})")
    print(f"Final action: {result.final_action.value}")
    for reason in result.plan.reasons:
        print(f"  - {reason}")


def example_batch():
    """
    Example: Batch Run

    Evaluates several funds on the worker pool and prints the summary.
    """
    print("\n" + "="*60)
    print("BATCH EXAMPLE")
    print("="*60 + "\n")

    config = EngineConfig()
    config.runner.max_workers = 4
    config.merge_structure = False

    runner = FundStrategyRunner(config, source=MockFundSource(volatility=0.012))
    groups = summarize(runner.run(['110022', '161725', '000001', '519674']))

    for bucket, lines in groups.items():
        print(f"{bucket.upper()}: {', '.join(lines) or '-'}")


def example_components():
    """
    Example: Using Individual Components
    """
    print("\n" + "="*60)
    print("COMPONENTS EXAMPLE")
    print("="*60 + "\n")

    values = [p.value for p in MockFundSource().fetch_history('000001', 300)]

    metrics = QuantScorer().score(values)
    for factor in metrics.factors:
        weight = metrics.applied_weights.get(factor.key, 0.0)
        print(f"{factor.label:>12}: {factor.value:6.1f} (weight {weight:.3f})")

    explain = ValuationExplainer().explain(values, metrics.trend_score)
    print(f"\n{explain.label}: {explain.explain}")


if __name__ == "__main__":
    example_single_fund()
    example_batch()
    example_components()
