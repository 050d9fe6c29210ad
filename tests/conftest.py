"""Shared pytest fixtures for the test suite."""

import json
import random
import shutil
import tempfile
from pathlib import Path

import pytest
import yaml


@pytest.fixture
def temp_dir():
    """Temporary directory that is automatically cleaned up after each test."""
    path = tempfile.mkdtemp()
    yield Path(path)
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def rng():
    """Seeded random source so tests are reproducible."""
    return random.Random(1234)


@pytest.fixture
def raw_config():
    """Configuration mapping in the config.yaml shape."""
    return {
        "Company": ["SAC1", "MAC1"],
        "UnderDelivery": {"TotalHappy": 2, "TotalNoPrepayment": 1, "TotalDiffPrepayment": 1},
        "OverDelivery": {"TotalHappy": 2, "TotalNoPrepayment": 1, "TotalDiffPrepayment": 1},
        "TotalOneToOne": 4,
        "TotalOneToMany": 4,
        "MaxNumberOneToMany": 4,
        "Seed": 7,
    }


@pytest.fixture
def local_source():
    return {
        "SAC1": {
            "SoNumber": "1000451",
            "Records": [
                {"BillingNumber": "90001201", "PrepaymentRequestnumber": "PR-SA-0001", "Amount": 1500},
                {"BillingNumber": "90001202", "PrepaymentRequestnumber": "PR-SA-0002", "Amount": 820},
                {"BillingNumber": "90001203", "PrepaymentRequestnumber": "PR-SA-0003", "Amount": 2300},
            ],
        },
        "MAC1": {
            "SoNumber": "1000452",
            "Records": [
                {"BillingNumber": "90002201", "PrepaymentRequestnumber": "PR-MA-0001", "Amount": 640},
            ],
        },
    }


@pytest.fixture
def usd_source():
    return {
        "SAC1": {
            "SoNumber": "1000461",
            "Records": [
                {"BillingNumber": "90004201", "PrepaymentRequestnumber": "PR-SA-0101", "Amount": 410},
            ],
        },
    }


@pytest.fixture
def order_template():
    """Minimal order template with a ZSFN pricing element."""
    return {
        "SalesOrder": [
            {
                "SalesOrderType": "ZDEL",
                "SalesOrderItemsSet": [],
                "SalesOrderItem": [
                    {
                        "SalesOrderItem": "10",
                        "PrepaymentRequestnumber": "",
                        "YY1_SFDCLINEID_I": "",
                        "YY1_SALESFORCEID_I": "",
                        "YY1_BATCHID_I": "",
                        "PricingElement": [
                            {"ConditionType": "ZPR0", "ConditionRateValue": 0},
                            {"ConditionType": "ZSFN", "ConditionRateValue": 0},
                        ],
                    }
                ],
            }
        ]
    }


@pytest.fixture
def workspace(temp_dir, raw_config, local_source, usd_source, order_template):
    """A directory laid out like a real run: config, sources and templates."""
    (temp_dir / "config.yaml").write_text(yaml.safe_dump(raw_config), encoding="utf-8")
    (temp_dir / "local.json").write_text(json.dumps(local_source), encoding="utf-8")
    (temp_dir / "USD.json").write_text(json.dumps(usd_source), encoding="utf-8")

    templates = temp_dir / "Sample"
    templates.mkdir()
    for company in raw_config["Company"]:
        (templates / f"{company}.json").write_text(json.dumps(order_template), encoding="utf-8")

    return temp_dir
