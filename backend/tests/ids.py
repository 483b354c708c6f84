"""Canonical remote ids shared by the test modules."""

JOURNEY_ID = "64b7f0c2a1b2c3d4e5f60718"
OTHER_ID = "650a1b2c3d4e5f6071829304"
ORG_ID = "6512ab34cd56ef7890123456"
REP_ID = OTHER_ID
