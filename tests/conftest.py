"""Shared fixtures for claims scraper tests."""

from __future__ import annotations

import pytest

from claims_scraper.config import Settings

BASE = "https://cases.example.com/acme"


@pytest.fixture()
def settings() -> Settings:
    """Settings authorizing the test site only."""
    return Settings(
        allowed_prefixes=("https://cases.example.com/",),
        user_agent="test-agent",
        request_timeout=5.0,
        post_params={"case": "acme"},
    )


LISTING_HTML = """\
<html>
<body>
  <div class="pager">Page 1 of <span id="p-total-pages">2</span></div>
  <table id="results-table">
    <thead>
      <tr><th>Creditor</th><th>Claim</th></tr>
    </thead>
    <tbody>
      <tr role="row">
        <td role="gridcell">
          <b class="tablesaw-cell-label">Creditor Name</b>
          <span class="tablesaw-cell-content">Widget Supply Co.</span>
        </td>
        <td role="gridcell">
          <b class="tablesaw-cell-label">Claim #</b>
          <span class="tablesaw-cell-content">
            <a href="#" onclick="ShowClaims('1042')">1042</a>
          </span>
        </td>
      </tr>
      <tr role="row">
        <td role="gridcell">
          <b class="tablesaw-cell-label">Creditor Name</b>
          <span class="tablesaw-cell-content">Harbor Freight Lines</span>
        </td>
        <td role="gridcell">
          <b class="tablesaw-cell-label">Claim #</b>
          <span class="tablesaw-cell-content">1043</span>
        </td>
      </tr>
      <tr role="row">
        <td role="gridcell">
          <b class="tablesaw-cell-label">Creditor Name</b>
          <span class="tablesaw-cell-content"> </span>
        </td>
      </tr>
    </tbody>
  </table>
</body>
</html>
"""

LAST_PAGE_HTML = """\
<html>
<body>
  <span id="p-total-pages">2</span>
  <table id="results-table">
    <tr role="row">
      <td role="gridcell">
        <b class="tablesaw-cell-label">Creditor Name</b>
        <span class="tablesaw-cell-content">Northwind Traders</span>
      </td>
    </tr>
  </table>
</body>
</html>
"""

DETAIL_HTML = """\
<html>
<body>
  <div class="field">
    <span class="label label--small">Debtor</span>
    <span class="value">Acme Holdings LLC</span>
  </div>
  <div class="field">
    <span class="label label--small">Creditor Name</span>
    <span class="value">Widget Supply Company</span>
  </div>
  <table id="claim-table-1042">
    <thead>
      <tr><th>Type</th><th>Amount</th></tr>
    </thead>
    <tbody>
      <tr>
        <td role="gridcell">
          <b class="tablesaw-cell-label">Type</b>
          <span class="tablesaw-cell-content">General Unsecured</span>
        </td>
        <td role="gridcell">
          <b class="tablesaw-cell-label">Amount</b>
          <span class="tablesaw-cell-content">$12,500.00</span>
        </td>
      </tr>
      <tr>
        <td role="gridcell">
          <b class="tablesaw-cell-label">Type</b>
          <span class="tablesaw-cell-content">Priority</span>
        </td>
        <td role="gridcell">
          <b class="tablesaw-cell-label">Amount</b>
          <span class="tablesaw-cell-content">$800.00</span>
        </td>
      </tr>
      <tr><td>no cells here</td></tr>
    </tbody>
  </table>
</body>
</html>
"""


@pytest.fixture()
def listing_html() -> str:
    return LISTING_HTML


@pytest.fixture()
def last_page_html() -> str:
    return LAST_PAGE_HTML


@pytest.fixture()
def detail_html() -> str:
    return DETAIL_HTML
