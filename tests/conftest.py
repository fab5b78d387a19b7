"""Shared fixtures: a small materials document and its parsed tree."""

from pathlib import Path

import pytest

from services.config import reload_settings
from services.tree_codec import parse_xml_bytes


SAMPLE_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<materials version="1.0">
  <material id="M1">
    <details>
      <favorite>1</favorite>
      <name>Oak</name>
      <type>wood</type>
      <rotatable>true</rotatable>
      <path>woods/oak</path>
      <visual_effect>
        <reflect>0.1</reflect>
        <rainbown>0</rainbown>
        <specular>0.5</specular>
        <shininess>20</shininess>
        <glossiness>0.60</glossiness>
        <opacity_min>0</opacity_min>
        <opacity_max>1</opacity_max>
      </visual_effect>
    </details>
    <textures>
      <top>
        <image>oak_top.jpg</image>
        <angle>90</angle>
        <fit_vertically>false</fit_vertically>
        <mirror>true</mirror>
      </top>
      <bottom>
        <image>oak_bottom.jpg</image>
        <angle>0</angle>
        <fit_vertically>true</fit_vertically>
      </bottom>
    </textures>
    <panels>
      <panel id="P1">
        <name>Oak 18</name>
        <article>A-18</article>
        <supplier>Acme</supplier>
        <thickness unit="mm">18</thickness>
        <solid_base id="SB1">Chipboard</solid_base>
        <layers>
          <layer id="L1">
            <name>Veneer</name>
            <type>veneer</type>
            <thickness unit="mm">0.6</thickness>
            <price unit="EUR">3.50</price>
          </layer>
          <layer id="L2">
            <name>Core</name>
            <thickness unit="mm">16.8</thickness>
            <length unit="mm">2800</length>
            <width unit="mm">2070</width>
          </layer>
        </layers>
      </panel>
    </panels>
    <edges>
      <edge id="E1">
        <name>Oak edge</name>
        <article>E-1</article>
        <supplier>Acme</supplier>
        <factory_width>23</factory_width>
        <thickness unit="mm">2</thickness>
        <price unit="EUR">1.20</price>
        <width_min unit="mm">20</width_min>
        <width_max unit="mm">25</width_max>
        <visual_effect>
          <angle>0</angle>
        </visual_effect>
      </edge>
    </edges>
  </material>
  <material id="M2">
    <details>
      <favorite>0</favorite>
      <name>Walnut</name>
      <type>wood</type>
      <rotatable>false</rotatable>
      <path>woods/walnut</path>
      <visual_effect>
        <reflect>0</reflect>
        <rainbown>0</rainbown>
        <specular>0.3</specular>
        <shininess>10</shininess>
        <glossiness>0.2</glossiness>
        <opacity_min>0</opacity_min>
        <opacity_max>1</opacity_max>
      </visual_effect>
    </details>
    <panels>
      <panel id="P2">
        <name>Walnut 19</name>
        <article>W-19</article>
        <supplier>Acme</supplier>
        <thickness unit="mm">19</thickness>
        <layers>
          <layer id="L3">
            <name>Solid</name>
            <thickness>19</thickness>
          </layer>
        </layers>
      </panel>
    </panels>
  </material>
</materials>
"""


@pytest.fixture
def sample_tree():
    return parse_xml_bytes(SAMPLE_XML)


@pytest.fixture
def sample_db(tmp_path: Path) -> Path:
    path = tmp_path / "materials.db"
    path.write_bytes(SAMPLE_XML)
    return path


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch):
    """Point reports/uploads at the test's temp dir."""
    monkeypatch.setenv("MATAPP_REPORTS_DIR", str(tmp_path / "reports"))
    monkeypatch.setenv("MATAPP_UPLOAD_DIR", str(tmp_path / "uploads"))
    settings = reload_settings()
    yield settings
    monkeypatch.undo()
    reload_settings()
