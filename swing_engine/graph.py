"""
LangGraph Analysis Pipeline
Wires the engine stages for one stock into a StateGraph.
"""

import logging
from typing import Any, Dict, List, Optional, TypedDict

from langgraph.graph import StateGraph, START, END

from swing_engine import candidates as candidates_mod
from swing_engine import indicators as indicators_mod
from swing_engine import levels as levels_mod
from swing_engine import zones as zones_mod
from swing_engine.regime import check_market_regime, get_regime_warning
from swing_engine.scoring import calculate_confidence, calculate_setup_score, pick_best_candidate

logger = logging.getLogger(__name__)


# ============================================================================
# STATE SCHEMA
# ============================================================================

class AnalysisState(TypedDict, total=False):
    """State passed between graph nodes."""

    # Inputs
    candles: Any
    scan_type: Optional[str]
    benchmark_return_1m: float
    benchmark_candles: Any
    weekly_rsi: Optional[float]

    # Stage outputs
    indicators: Dict[str, Any]
    levels: Dict[str, Any]
    market: Dict[str, Any]
    zones: Dict[str, Any]
    candidates: Dict[str, Any]
    selection: Dict[str, Any]
    confidence: Dict[str, Any]
    setup_score: Dict[str, Any]
    data_health: Dict[str, Any]
    regime: Optional[Dict[str, Any]]
    regime_warning: Optional[Dict[str, Any]]

    errors: List[str]


# ============================================================================
# GRAPH NODES
# ============================================================================

def indicators_node(state: AnalysisState) -> AnalysisState:
    """Compute the indicator set and its health report."""
    state["errors"] = list(state.get("errors") or [])
    ind = indicators_mod.calculate(state.get("candles"))
    state["indicators"] = ind

    if ind.get("error"):
        logger.warning(f"Indicator stage failed: {ind['error']}")
        state["errors"].append(f"Indicator calculation failed: {ind['error']}")
        return state

    state["data_health"] = indicators_mod.check_data_health(ind)
    state["market"] = {
        "trend": indicators_mod.determine_trend(ind),
        "volatility": indicators_mod.determine_volatility(ind),
        "volume": indicators_mod.determine_volume_classification(ind),
        "current_price": ind.get("last"),
    }
    logger.debug(f"Market context: {state['market']}")
    return state


def should_continue(state: AnalysisState) -> str:
    """
    Conditional routing: stop at once when indicators failed.

    Returns:
        'halt' on an indicator error, 'continue' otherwise
    """
    if state["indicators"].get("error"):
        return "halt"
    return "continue"


def levels_node(state: AnalysisState) -> AnalysisState:
    """Classic pivot levels from the previous session."""
    state["levels"] = levels_mod.calculate(state["indicators"])
    return state


def zones_node(state: AnalysisState) -> AnalysisState:
    """Entry, stop and target zones."""
    state["zones"] = zones_mod.calculate(state["indicators"], state["levels"])
    return state


def candidates_node(state: AnalysisState) -> AnalysisState:
    """Generate trade candidates C1-C4."""
    state["candidates"] = candidates_mod.generate(
        state["indicators"],
        state["levels"],
        scan_type=state.get("scan_type"),
        trend=state["market"]["trend"],
    )
    return state


def selection_node(state: AnalysisState) -> AnalysisState:
    """Rank candidates and score confidence in the best one."""
    selection = pick_best_candidate(state["candidates"])
    state["selection"] = selection
    state["confidence"] = calculate_confidence(selection["best"], state["indicators"])
    logger.debug(selection["reason"])
    return state


def _score_levels(state: AnalysisState) -> Optional[Dict[str, Any]]:
    """Trade levels to score: the selected candidate, else the zone summary."""
    best = state["selection"].get("best")
    if best:
        skeleton = best["skeleton"]
        return {
            "entry": skeleton["entry"],
            "target": skeleton["target"],
            "riskReward": skeleton["riskReward"],
        }

    summary = (state.get("zones") or {}).get("summary")
    if summary:
        return {
            "entry": summary.get("entry_center"),
            "target": summary.get("target"),
            "riskReward": summary.get("risk_reward"),
        }
    return None


def scoring_node(state: AnalysisState) -> AnalysisState:
    """0-100 setup score with elimination gates."""
    stock = dict(state["indicators"])
    if state.get("weekly_rsi") is not None:
        stock["weekly_rsi"] = state["weekly_rsi"]

    state["setup_score"] = calculate_setup_score(
        stock,
        levels=_score_levels(state),
        benchmark_return_1m=state.get("benchmark_return_1m", 0.0),
        debug=logger.isEnabledFor(logging.DEBUG),
        scan_type=state.get("scan_type"),
    )
    return state


def should_check_regime(state: AnalysisState) -> str:
    if state.get("benchmark_candles") is not None:
        return "regime"
    return "done"


def regime_node(state: AnalysisState) -> AnalysisState:
    """Advisory benchmark regime check for the selected setup."""
    try:
        regime = check_market_regime(state["benchmark_candles"])
        best = state["selection"].get("best")
        side = best["skeleton"]["type"] if best else None
        state["regime"] = regime
        state["regime_warning"] = get_regime_warning(side, regime)
    except Exception as e:
        logger.error(f"Error checking market regime: {e}")
        state["errors"].append(f"Regime check failed: {str(e)}")
        state["regime"] = None
        state["regime_warning"] = None

    return state


# ============================================================================
# GRAPH CONSTRUCTION
# ============================================================================

def create_analysis_graph() -> StateGraph:
    """
    Create the analysis workflow.

    Workflow:
        START -> indicators -> [conditional: indicator error?]
                   YES -> END
                   NO  -> levels -> zones -> candidates -> selection -> scoring
                          -> [conditional: benchmark candles?]
                               YES -> regime -> END
                               NO  -> END
    """
    workflow = StateGraph(AnalysisState)

    workflow.add_node("indicators", indicators_node)
    workflow.add_node("levels", levels_node)
    workflow.add_node("zones", zones_node)
    workflow.add_node("candidates", candidates_node)
    workflow.add_node("selection", selection_node)
    workflow.add_node("scoring", scoring_node)
    workflow.add_node("regime", regime_node)

    workflow.add_edge(START, "indicators")
    workflow.add_conditional_edges(
        "indicators",
        should_continue,
        {
            "continue": "levels",
            "halt": END,
        }
    )
    workflow.add_edge("levels", "zones")
    workflow.add_edge("zones", "candidates")
    workflow.add_edge("candidates", "selection")
    workflow.add_edge("selection", "scoring")
    workflow.add_conditional_edges(
        "scoring",
        should_check_regime,
        {
            "regime": "regime",
            "done": END,
        }
    )
    workflow.add_edge("regime", END)

    return workflow


def compile_graph():
    """Compile the graph for execution."""
    return create_analysis_graph().compile()


def run_analysis(candles: Any, scan_type: Optional[str] = None, benchmark_return_1m: float = 0.0,
                 benchmark_candles: Any = None, weekly_rsi: Optional[float] = None) -> AnalysisState:
    """
    Run the full analysis graph for one candle series.

    Returns:
        Final graph state
    """
    graph = compile_graph()

    initial_state: AnalysisState = {
        "candles": candles,
        "scan_type": scan_type,
        "benchmark_return_1m": benchmark_return_1m,
        "benchmark_candles": benchmark_candles,
        "weekly_rsi": weekly_rsi,
        "errors": [],
    }

    return graph.invoke(initial_state)
