#!/usr/bin/env python3

from setuptools import setup
import time

setup(
  name='''xdg2lynxcfg''',
  version=time.strftime('%Y.%m.%d.%H.%M.%S', time.gmtime(1717200000)),
  description='''Convert XDG desktop entries and mimeinfo.cache files to lynx.cfg VIEWER lines.''',
  author='''The Remph''',
  author_email='''lhr@disroot.org''',
  license='''GPL''',
  py_modules=['''Xdg2LynxCfg'''],
  install_requires=['''pyxdg'''],
  extras_require={
    '''test''': ['''pytest'''],
  },
  entry_points={
    '''console_scripts''': ['''xdg2lynxcfg = Xdg2LynxCfg:run'''],
  },
)
