"""
Fleet Level Analytics Test Suite

This package contains tests for the Fleet Level Analytics project.

Test modules:
- test_trends.py: Tests for trend classification
- test_predictions.py: Tests for depletion prediction
- test_periods.py / test_aggregator.py: Tests for calendar period aggregation
- test_fleet.py: Tests for level alerts and fleet KPI summaries
- test_cache.py: Tests for cache backends and memoization
- test_config.py: Tests for settings and thresholds
- test_database.py: Tests for models and the reading store
- test_service.py / test_cli.py: Tests for the analytics service and CLI

Usage:
    # Run all tests
    pytest tests/

    # Run specific test module
    pytest tests/test_trends.py

    # Skip database tests
    pytest -m "not database" tests/
"""

import sys
from pathlib import Path

# Add the project root to Python path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))
