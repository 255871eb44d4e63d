"""Anti-fraud signal aggregation.

Every probe is an independent, unreliable boolean classifier collected by
the browser or observed on the request. The ensembles below only decide how
probe results are voted into a verdict, so new probes can be added without
touching the voting policy.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

class ProbeSource(Enum):
    """Where a probe result was observed."""
    CLIENT = 'client'
    SERVER = 'server'

class Confidence(Enum):
    HIGH = 'high'
    LOW = 'low'

@dataclass(frozen=True)
class ProbeResult:
    """Result of one fallible probe."""
    name: str
    positive: bool
    source: ProbeSource = ProbeSource.CLIENT

@dataclass
class FraudVerdict:
    """Suspicion verdict produced by an ensemble."""
    suspected: bool
    indicators: List[str] = field(default_factory=list)
    confidence: Optional[Confidence] = None
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'suspected': self.suspected,
            'indicators': list(self.indicators),
            'confidence': self.confidence.value if self.confidence else None
        }

# =================== PROBE NAMES ===================

STORAGE_QUOTA_LOW = 'storage-quota-low'
LOCAL_STORAGE_FAILED = 'local-storage-failed'
SESSION_STORAGE_FAILED = 'session-storage-failed'
INDEXED_DB_FAILED = 'indexeddb-failed'
NO_FILESYSTEM_API = 'no-filesystem'
COOKIES_DISABLED = 'cookies-disabled'
MISSING_ACCEPT_LANGUAGE = 'missing-accept-language'
DNT_ENABLED = 'dnt-enabled'
AGGRESSIVE_CACHE_CONTROL = 'aggressive-cache-control'
AUTOMATION_USER_AGENT = 'suspicious-user-agent'

ICE_CANDIDATE_LEAK = 'webrtc-leak'
TIMEZONE_MISMATCH = 'timezone-mismatch'
VPN_USER_AGENT = 'vpn-user-agent'
CLIENT_VPN_VERDICT = 'client-vpn-verdict'

# Client payload key -> probe name for pre-computed browser probes
CLIENT_PRIVATE_PROBES = {
    'storageQuotaLow': STORAGE_QUOTA_LOW,
    'localStorageFailed': LOCAL_STORAGE_FAILED,
    'sessionStorageFailed': SESSION_STORAGE_FAILED,
    'indexedDbFailed': INDEXED_DB_FAILED,
    'noFileSystemApi': NO_FILESYSTEM_API,
    'cookiesDisabled': COOKIES_DISABLED,
}

CLIENT_VPN_PROBES = {
    'webrtcLeak': ICE_CANDIDATE_LEAK,
    'timezoneMismatch': TIMEZONE_MISMATCH,
}

DEFAULT_STORAGE_QUOTA_BYTES = 10_000_000
SUSPICIOUS_TIMEZONES = ('UTC', 'GMT', 'Europe/London')
VPN_USER_AGENT_MARKERS = ('vpn', 'proxy', 'tor')
AUTOMATION_USER_AGENT_MARKERS = ('headless', 'phantom', 'selenium', 'webdriver')
ICE_LEAK_CANDIDATE_TYPES = ('relay', 'srflx')
MIN_ACCEPT_LANGUAGE_LENGTH = 5

# =================== PURE PROBES ===================

def storage_quota_probe(quota_bytes: Optional[float],
                        threshold: int = DEFAULT_STORAGE_QUOTA_BYTES) -> ProbeResult:
    """Private windows usually report a quota well under 10 MB."""
    return ProbeResult(STORAGE_QUOTA_LOW, (quota_bytes or 0) < threshold)

def ice_candidate_probe(candidates: Iterable[str]) -> ProbeResult:
    leaked = any(
        kind in (candidate or '')
        for candidate in candidates
        for kind in ICE_LEAK_CANDIDATE_TYPES
    )
    return ProbeResult(ICE_CANDIDATE_LEAK, leaked)

def timezone_probe(timezone_name: Optional[str], offset_minutes: Optional[int]) -> ProbeResult:
    """A generic zone name paired with a non-zero offset hints at a tunnel."""
    mismatch = timezone_name in SUSPICIOUS_TIMEZONES and bool(offset_minutes)
    return ProbeResult(TIMEZONE_MISMATCH, mismatch)

def user_agent_vpn_probe(user_agent: Optional[str],
                         source: ProbeSource = ProbeSource.CLIENT) -> ProbeResult:
    ua = str(user_agent or '').lower()
    return ProbeResult(VPN_USER_AGENT, any(m in ua for m in VPN_USER_AGENT_MARKERS), source)

def header_probes(headers: Mapping[str, str], include_automation: bool = False) -> List[ProbeResult]:
    """Header anomalies observed server-side that are common in private mode."""
    accept_language = headers.get('Accept-Language')
    cache_control = headers.get('Cache-Control') or ''
    
    probes = [
        ProbeResult(
            MISSING_ACCEPT_LANGUAGE,
            not accept_language or len(accept_language) < MIN_ACCEPT_LANGUAGE_LENGTH,
            ProbeSource.SERVER
        ),
        ProbeResult(DNT_ENABLED, headers.get('DNT') == '1', ProbeSource.SERVER),
        ProbeResult(
            AGGRESSIVE_CACHE_CONTROL,
            'no-store' in cache_control or 'no-cache' in cache_control,
            ProbeSource.SERVER
        ),
    ]
    
    if include_automation:
        ua = (headers.get('User-Agent') or '').lower()
        probes.append(ProbeResult(
            AUTOMATION_USER_AGENT,
            any(m in ua for m in AUTOMATION_USER_AGENT_MARKERS),
            ProbeSource.SERVER
        ))
    
    return probes

# =================== ENSEMBLES ===================

class PrivateBrowsingEnsemble:
    """Count-threshold vote: suspected once enough probes agree."""
    
    THRESHOLD = 2
    
    @classmethod
    def evaluate(cls, probes: Iterable[ProbeResult]) -> FraudVerdict:
        positives = [p for p in probes if p.positive]
        server_positives = [p for p in positives if p.source is ProbeSource.SERVER]
        
        confidence = Confidence.HIGH if len(server_positives) >= cls.THRESHOLD else Confidence.LOW
        
        return FraudVerdict(
            suspected=len(positives) >= cls.THRESHOLD,
            indicators=[p.name for p in positives],
            confidence=confidence
        )

class VPNEnsemble:
    """Logical OR: any positive probe is enough."""
    
    @classmethod
    def evaluate(cls, probes: Iterable[ProbeResult]) -> FraudVerdict:
        positives = [p for p in probes if p.positive]
        return FraudVerdict(
            suspected=bool(positives),
            indicators=[p.name for p in positives]
        )

# =================== COLLECTION ===================

class FraudService:
    """Turns request payloads and headers into typed probe lists."""
    
    @staticmethod
    def private_browsing_probes(
        browser_signal: Mapping[str, Any],
        headers: Mapping[str, str],
        quota_threshold: int = DEFAULT_STORAGE_QUOTA_BYTES
    ) -> List[ProbeResult]:
        probes = []
        reported = browser_signal.get('probes')
        if not isinstance(reported, dict):
            reported = {}
        
        for key, name in CLIENT_PRIVATE_PROBES.items():
            if key in reported:
                probes.append(ProbeResult(name, reported[key] is True))
        
        # Raw quota wins over the client's own threshold decision
        if browser_signal.get('storageQuota') is not None:
            probes = [p for p in probes if p.name != STORAGE_QUOTA_LOW]
            try:
                quota = float(browser_signal['storageQuota'])
            except (TypeError, ValueError):
                quota = 0
            probes.append(storage_quota_probe(quota, quota_threshold))
        
        if browser_signal.get('cookieEnabled') is False and COOKIES_DISABLED not in {p.name for p in probes}:
            probes.append(ProbeResult(COOKIES_DISABLED, True))
        
        probes.extend(header_probes(headers))
        return probes
    
    @staticmethod
    def vpn_probes(
        vpn_suspected: bool,
        reported: Mapping[str, Any],
        browser_signal: Mapping[str, Any],
        headers: Mapping[str, str]
    ) -> List[ProbeResult]:
        probes = [ProbeResult(CLIENT_VPN_VERDICT, vpn_suspected is True)]
        
        for key, name in CLIENT_VPN_PROBES.items():
            if key in reported:
                probes.append(ProbeResult(name, reported[key] is True))
        
        candidates = browser_signal.get('iceCandidates')
        if isinstance(candidates, list):
            probes.append(ice_candidate_probe(str(c) for c in candidates))
        
        if 'timezone' in browser_signal:
            probes.append(timezone_probe(
                browser_signal.get('timezone'),
                browser_signal.get('timezoneOffset')
            ))
        
        probes.append(user_agent_vpn_probe(browser_signal.get('userAgent')))
        probes.append(user_agent_vpn_probe(headers.get('User-Agent'), ProbeSource.SERVER))
        return probes
