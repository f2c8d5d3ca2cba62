#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import datetime
import io
import logging

from flask import Flask, jsonify, render_template, send_file

from constants import CONCURRENCY, DEFAULT_TIMEOUT, LAST_RESULTS, URLS_FILE
from report import REPORT_HEADER, render_markdown_report, result_to_dict, to_report_rows
from scanner import run_batch_scan

app = Flask(__name__)

logger = logging.getLogger(__name__)


@app.route("/")
def index():
    return render_template(
        "index.html",
        header=REPORT_HEADER,
        rows=to_report_rows(LAST_RESULTS),
        timeout=DEFAULT_TIMEOUT,
        concurrency=CONCURRENCY,
    )


@app.route("/scan", methods=["POST"])
def scan():
    try:
        results = run_batch_scan(URLS_FILE, timeout=DEFAULT_TIMEOUT, concurrency=CONCURRENCY)
    except OSError as exc:
        logger.error("Cannot read %s: %s", URLS_FILE, exc)
        return jsonify({"error": f"cannot read {URLS_FILE}: {exc}"}), 500
    return jsonify({"results": [result_to_dict(r) for r in results]})


@app.route("/download_md", methods=["GET"])
def download_md():
    markdown = render_markdown_report(LAST_RESULTS)
    ts = datetime.datetime.now(datetime.timezone.utc).strftime("%Y%m%d_%H%M%S")
    mem = io.BytesIO(markdown.encode("utf-8"))
    mem.seek(0)
    return send_file(
        mem,
        mimetype="text/markdown; charset=utf-8",
        as_attachment=True,
        download_name=f"rss_health_{ts}.md",
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.run(host="0.0.0.0", port=8080, debug=True)
