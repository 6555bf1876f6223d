#!/usr/bin/env python3
# api/app/main.py

import logging
import os
from typing import Dict, List, Optional, Tuple

import networkx as nx
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import uvicorn

from audiencescout import __version__, config
from audiencescout.battle_zones import StoreLocation, classify_battle_zones
from audiencescout.errors import SchemaError
from audiencescout.geo.coords import RegionBounds, compute_centroid, normalize_centroid
from audiencescout.geo.h3_utils import bounds_of_cells
from audiencescout.ids import district_id
from audiencescout.overlay.hex_binner import bin_report_to_hex
from audiencescout.scoring import (
    AggregationContext,
    ConstructionMode,
    District,
    ProviderSignal,
    compute_agreement,
    compute_confidence,
)

APP_NAME = "AudienceScout scoring API"

logger = logging.getLogger(__name__)

# ---------- Config ----------
ALLOWED_ORIGINS = [o.strip() for o in os.environ.get("AS_ALLOWED_ORIGINS", "*").split(",") if o.strip()]


# ---------- Request models ----------
class SignalIn(BaseModel):
    provider: str
    district: str
    present: bool
    confidence: float
    segment_key: Optional[str] = None
    provider_segment_label: Optional[str] = None
    centroid: Optional[Tuple[float, float]] = Field(None, description="(lat, lng)")


class DistrictIn(BaseModel):
    district: str
    centroid: Optional[Tuple[float, float]] = Field(None, description="(lat, lng)")
    polygon: Optional[Dict] = Field(None, description="GeoJSON Polygon, [lng, lat] order")
    household_estimate: Optional[int] = None


class ScoringRequest(BaseModel):
    signals: List[SignalIn]
    anchor_provider: str = config.ANCHOR_PROVIDER
    segment: Optional[str] = None
    candidate_segments: List[str] = []
    providers: Optional[List[str]] = None
    districts: List[DistrictIn] = []
    region: str = config.DEPLOYMENT_REGION


class AgreementRequest(ScoringRequest):
    threshold: int = 1


class ConfidenceRequest(ScoringRequest):
    threshold: float = config.CONFIDENCE_THRESHOLD_DEFAULT


class HexRequest(ScoringRequest):
    mode: ConstructionMode = ConstructionMode.VALIDATION
    threshold: Optional[float] = None
    resolution: int = config.H3_RES_DEFAULT


class StoreIn(BaseModel):
    store_id: str
    brand: str
    district: str


class BattleZoneRequest(BaseModel):
    stores: List[StoreIn]
    base_brand: str
    competitor_brands: List[str] = []
    rings: int = 0
    adjacency: List[Tuple[str, str]] = []
    region_districts: Optional[List[str]] = None
    top_n: int = config.BATTLE_ZONE_TOP_CONTESTED


# ---------- Conversion ----------
def _signals(req: ScoringRequest, region: RegionBounds) -> List[ProviderSignal]:
    return [
        ProviderSignal(
            provider_id=s.provider,
            district_id=s.district,
            present=s.present,
            confidence=s.confidence,
            segment_key=s.segment_key,
            provider_segment_label=s.provider_segment_label,
            centroid=normalize_centroid(s.centroid, region, label=s.district) if s.centroid else None,
        )
        for s in req.signals
    ]


def _district(d: DistrictIn, region: RegionBounds) -> District:
    centroid = normalize_centroid(d.centroid, region, label=d.district) if d.centroid else None
    if centroid is None and d.polygon is not None:
        # GeoJSON [lng, lat] is read once here; District.centroid is (lat, lng)
        centroid = compute_centroid(d.polygon)
    return District(
        district_id=d.district,
        centroid=centroid,
        polygon=d.polygon,
        household_estimate=d.household_estimate,
    )


def _context(req: ScoringRequest, mode: ConstructionMode, region: RegionBounds) -> AggregationContext:
    return AggregationContext.build(
        mode=mode,
        anchor_provider=req.anchor_provider,
        segment=req.segment,
        candidate_segments=req.candidate_segments,
        providers=req.providers,
        districts=[_district(d, region) for d in req.districts],
    )


def _run(fn, *args, **kwargs):
    """Map domain errors onto HTTP status codes."""
    try:
        return fn(*args, **kwargs)
    except SchemaError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception(f"Unhandled error in {getattr(fn, '__name__', fn)}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


def _agreement(req: AgreementRequest) -> dict:
    region = RegionBounds.named(req.region)
    context = _context(req, ConstructionMode.VALIDATION, region)
    report = compute_agreement(_signals(req, region), req.threshold, context)
    return report.to_dict()


def _confidence(req: ConfidenceRequest) -> dict:
    region = RegionBounds.named(req.region)
    context = _context(req, ConstructionMode.EXTENSION, region)
    report = compute_confidence(_signals(req, region), req.threshold, context)
    return report.to_dict()


def _hex(req: HexRequest) -> dict:
    region = RegionBounds.named(req.region)
    context = _context(req, req.mode, region)
    if req.mode is ConstructionMode.VALIDATION:
        threshold = req.threshold if req.threshold is not None else 1
        report = compute_agreement(_signals(req, region), threshold, context)
    else:
        threshold = req.threshold if req.threshold is not None else config.CONFIDENCE_THRESHOLD_DEFAULT
        report = compute_confidence(_signals(req, region), threshold, context)
    cells = bin_report_to_hex(report, req.resolution, region=region)
    return {
        "summary": report.summary(),
        "res": req.resolution,
        "bounds": bounds_of_cells(c.h3_index for c in cells),
        "cells": [c.to_dict() for c in cells],
    }


def _battle_zones(req: BattleZoneRequest) -> dict:
    stores = [StoreLocation(store_id=s.store_id, brand=s.brand, district_id=s.district) for s in req.stores]
    graph = None
    if req.adjacency:
        graph = nx.Graph()
        graph.add_edges_from((district_id(a), district_id(b)) for a, b in req.adjacency)
    report = classify_battle_zones(
        stores,
        ring_radius=req.rings,
        base_brand=req.base_brand,
        competitor_brands=req.competitor_brands,
        adjacency=graph,
        region_filter=req.region_districts,
        top_n=req.top_n,
    )
    return report.to_dict()


# ---------- FastAPI ----------
app = FastAPI(title=APP_NAME, version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {"ok": True, "app": APP_NAME, "version": __version__}


@app.get("/api/settings")
def settings():
    """Slider ranges and defaults the map controls are built from."""
    return {
        "agreement": {"min": 1, "step": 1, "default": 1},
        "confidence": {
            "min": config.CONFIDENCE_SLIDER_MIN,
            "max": config.CONFIDENCE_SLIDER_MAX,
            "step": config.CONFIDENCE_SLIDER_STEP,
            "default": config.CONFIDENCE_THRESHOLD_DEFAULT,
        },
        "resolution": {"min": config.H3_RES_MIN, "max": config.H3_RES_MAX, "default": config.H3_RES_DEFAULT},
        "region": config.DEPLOYMENT_REGION,
        "regions": sorted(config.REGION_BOUNDING_BOXES),
    }


@app.post("/api/agreement")
def post_agreement(req: AgreementRequest):
    """Validation mode: per-district provider agreement and the inclusion set."""
    return _run(_agreement, req)


@app.post("/api/confidence")
def post_confidence(req: ConfidenceRequest):
    """Extension mode: per-district average confidence with per-provider attribution."""
    return _run(_confidence, req)


@app.post("/api/hex")
def post_hex(req: HexRequest):
    return _run(_hex, req)


@app.post("/api/battle_zones")
def post_battle_zones(req: BattleZoneRequest):
    return _run(_battle_zones, req)


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("AS_LOG_LEVEL", "INFO").upper())
    logger.info(f"Starting {APP_NAME} on http://{config.API_HOST}:{config.API_PORT}")
    uvicorn.run("main:app", host=config.API_HOST, port=config.API_PORT, reload=True, app_dir="api/app")
