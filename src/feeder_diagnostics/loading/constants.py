"""
Loading Constants
=================

Domain constants and fixed report texts for transformer load diagnostics.
"""

# kVA -> per-phase rated current (A). 200 kVA gives ~267 A per phase.
RATED_LOAD_FACTOR = 1.334

# Fraction of per-phase rated current above which a phase is overloaded
OVERLOAD_FRACTION = 0.8

# Rated neutral is 10% of full load
NEUTRAL_FRACTION = 0.1
NEUTRAL_CRITICAL_MULTIPLIER = 2.0

# Whole-transformer imbalance classification (strict >)
IMBALANCE_WARNING_PCT = 30.0
IMBALANCE_CRITICAL_PCT = 50.0

# Per-leg report thresholds (>=)
LEG_IMBALANCE_PCT = 30.0
LEG_CRITICAL_IMBALANCE_PCT = 80.0

# Smallest excess over the phase mean worth a "move" instruction (A)
MIN_REBALANCE_AMPS = 5.0

# Load status bands on percentage load (>=)
LOAD_STATUS_AVERAGE_PCT = 45.0
LOAD_STATUS_OVERLOAD_PCT = 70.0

# Enforced by the record form, not the engine
MAX_FEEDER_LEGS = 8

PHASE_NAMES = ("Red", "Yellow", "Blue")

NEUTRAL_CRITICAL_MESSAGE = "Critical: Neutral current exceeds 200% of rated neutral"
NEUTRAL_WARNING_MESSAGE = "Warning: Neutral current exceeds rated neutral"
IMBALANCE_CRITICAL_MESSAGE = "Critical: Severe phase imbalance detected"
IMBALANCE_WARNING_MESSAGE = "Warning: Significant phase imbalance detected"

ADD_READINGS_PROMPT = "Add feeder leg readings to see diagnosis."
NO_ISSUES_MESSAGE = "✅ No issues detected. All phases are balanced and within safe limits."

BALANCING_STEPS_HEADER = "🔧 URGENT BALANCING STEPS:"
BALANCING_STEPS = (
    "1. ⚠️ IMMEDIATE: Turn OFF single-phase loads on heaviest phases",
    "2. 🔄 Reconnect them to the lightest phases (check circuit breakers/isolators)",
    "3. 📊 Target: Aim for similar current values across all three phases",
    "4. 🔍 Check for loose connections or faulty equipment",
    "5. ⚡ Monitor neutral current - should be near zero when balanced",
    "6. 🛠️ Consider installing load balancing equipment if imbalance persists",
)

HAZARD_HEADER = "⚠️ WARNING: Severe phase imbalance can cause:"
HAZARD_BULLETS = (
    "   • Transformer overheating and premature failure",
    "   • Voltage unbalance affecting connected equipment",
    "   • Neutral conductor overload and potential fire hazard",
    "   • Motor damage from unbalanced supply voltage",
)
