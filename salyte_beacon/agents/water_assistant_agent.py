import copy
import logging
import google.generativeai as genai

logger = logging.getLogger(__name__)

WHO_GUIDELINES = {
    'title': 'WHO Guidelines for Drinking-water Quality',
    'url': 'https://www.who.int/publications/i/item/9789241549950',
    'type': 'Official Guidelines',
    'description': 'World Health Organization standards for drinking water quality parameters'
}

# Topics are checked in order; the first one with a matching keyword wins
KNOWLEDGE_BASE = [
    {
        'topic': 'ph',
        'keywords': ['ph', 'acidity', 'acidic', 'alkaline'],
        'answer': (
            "The pH level is a crucial indicator of water quality. For drinking water, the WHO "
            "recommends a pH range of 6.5-8.5. pH below 6.5 indicates acidic water which can corrode "
            "pipes and leach metals, while pH above 8.5 indicates alkaline water which can cause scaling "
            "and bitter taste. Regular pH testing helps ensure water safety and system longevity."
        ),
        'sources': [
            WHO_GUIDELINES,
            {
                'title': 'EPA Water Quality Standards',
                'url': 'https://www.epa.gov/standards-water-body-activities',
                'type': 'Regulatory Standard',
                'description': 'US Environmental Protection Agency water quality criteria'
            }
        ],
        'confidence': 0.95,
        'tokens_used': 150
    },
    {
        'topic': 'tds',
        'keywords': ['tds', 'dissolved solids', 'minerals'],
        'answer': (
            "Total Dissolved Solids (TDS) measures the concentration of dissolved substances in water, "
            "including minerals, salts, and metals. The WHO suggests TDS levels below 1000 mg/L for "
            "drinking water, with optimal taste typically between 300-500 mg/L. High TDS doesn't "
            "necessarily indicate unsafe water, but very high levels (>1000 mg/L) may affect taste and "
            "could indicate contamination."
        ),
        'sources': [
            {
                'title': 'WHO TDS Standards',
                'url': 'https://www.who.int/water_sanitation_health/dwq/chemicals/tds.pdf',
                'type': 'Technical Document',
                'description': 'WHO technical guidelines on total dissolved solids in drinking water'
            }
        ],
        'confidence': 0.92,
        'tokens_used': 140
    },
    {
        'topic': 'bacteria',
        'keywords': ['bacteria', 'e. coli', 'e.coli', 'microb', 'pathogen'],
        'answer': (
            "Bacterial contamination is a serious water safety concern. E. coli is used as an indicator "
            "organism for fecal contamination. Testing methods include membrane filtration, multiple tube "
            "fermentation, and rapid enzyme tests. For field testing, use sterile collection techniques and "
            "approved test kits. Professional lab analysis is recommended for accurate results. Boiling "
            "water for 1 minute kills most bacteria if contamination is suspected."
        ),
        'sources': [
            {
                'title': 'CDC Water Testing Guidelines',
                'url': 'https://www.cdc.gov/healthywater/drinking/private/wells/testing.html',
                'type': 'Health Guidelines',
                'description': 'Centers for Disease Control guidelines for bacterial water testing'
            },
            {
                'title': 'EPA Microbial Testing Methods',
                'url': 'https://www.epa.gov/ground-water-and-drinking-water/microbiological',
                'type': 'Testing Protocol',
                'description': 'EPA approved methods for microbiological testing of water'
            }
        ],
        'confidence': 0.97,
        'tokens_used': 180
    },
    {
        'topic': 'treatment',
        'keywords': ['filter', 'treatment', 'purif', 'clean'],
        'answer': (
            "Water treatment options vary by contamination type and scale. For households: activated carbon "
            "filters remove chlorine and organics, reverse osmosis removes dissolved solids and most "
            "contaminants, UV sterilization kills microorganisms. For communities: slow sand filtration, "
            "chlorination, and multi-stage treatment systems. Choose treatment based on water testing "
            "results and specific contaminants present."
        ),
        'sources': [
            {
                'title': 'WHO Water Treatment Guidelines',
                'url': 'https://www.who.int/water_sanitation_health/publications/drinking-water-guidelines/en/',
                'type': 'Treatment Guidelines',
                'description': 'WHO recommendations for household and community water treatment'
            },
            {
                'title': 'NSF/ANSI Standards for Water Treatment',
                'url': 'https://www.nsf.org/consumer-resources/water-quality',
                'type': 'Industry Standard',
                'description': 'NSF International standards for water treatment equipment'
            }
        ],
        'confidence': 0.94,
        'tokens_used': 165
    },
    {
        'topic': 'turbidity',
        'keywords': ['turbidity', 'cloudy', 'clear', 'visibility', 'ntu'],
        'answer': (
            "Turbidity measures water clarity and is expressed in Nephelometric Turbidity Units (NTU). The "
            "WHO recommends turbidity below 1 NTU for drinking water, with levels above 4 NTU being easily "
            "visible. High turbidity can indicate contamination, interfere with disinfection, and harbor "
            "pathogens. Turbidimeters provide accurate measurements, while visual assessment can detect "
            "obvious cloudiness."
        ),
        'sources': [
            {
                'title': 'WHO Turbidity Guidelines',
                'url': 'https://www.who.int/water_sanitation_health/dwq/chemicals/turbidity/en/',
                'type': 'Quality Standard',
                'description': 'WHO guidelines on turbidity in drinking water'
            }
        ],
        'confidence': 0.90,
        'tokens_used': 135
    },
    {
        'topic': 'chlorine',
        'keywords': ['chlorine', 'disinfect', 'chemical'],
        'answer': (
            "Chlorine is the most common water disinfectant. Free chlorine levels of 0.2-1.0 mg/L are "
            "typical in treated water supplies. While effective against bacteria and viruses, chlorine "
            "doesn't kill all parasites like Cryptosporidium. Test chlorine residual with DPD test kits or "
            "chlorine test strips. If chlorine taste/odor is strong, activated carbon filtration can reduce "
            "it while maintaining safety."
        ),
        'sources': [
            {
                'title': 'EPA Chlorine Disinfection Guidelines',
                'url': 'https://www.epa.gov/ground-water-and-drinking-water/chlorine-residuals',
                'type': 'Regulatory Guidance',
                'description': 'EPA guidelines for chlorine residuals in drinking water systems'
            }
        ],
        'confidence': 0.93,
        'tokens_used': 155
    }
]

DEFAULT_ENTRY = {
    'topic': 'general',
    'keywords': [],
    'answer': (
        "I'm here to help with water quality, testing, and treatment questions. I can provide information "
        "about water parameters like pH, TDS, turbidity, bacterial contamination, filtration methods, and "
        "safety guidelines. For the most accurate and specific advice for your situation, please provide "
        "more details about your water quality concerns or testing needs."
    ),
    'sources': [dict(WHO_GUIDELINES, type='Reference Guide')],
    'confidence': 0.85,
    'tokens_used': 120
}


class WaterAssistantAgent:
    """Answers water safety questions.

    With an API key the answer comes from Gemini, grounded on the matching
    knowledge base entry and the recent conversation. Without one, or when
    the model call fails, the knowledge base answers directly.
    """

    def __init__(self, api_key=None, model_name='gemini-2.5-flash'):
        self.model = None
        if api_key:
            genai.configure(api_key=api_key)
            self.model = genai.GenerativeModel(model_name)

    @staticmethod
    def match_topic(message):
        """Knowledge base entry for the first topic the message mentions"""
        text = message.lower()
        for entry in KNOWLEDGE_BASE:
            if any(keyword in text for keyword in entry['keywords']):
                return entry
        return DEFAULT_ENTRY

    def answer(self, message, history=''):
        entry = self.match_topic(message)

        if self.model:
            try:
                return self._generate_answer(message, entry, history)
            except Exception as e:
                logger.warning("Model answer failed, falling back to knowledge base: %s", e)

        return self._knowledge_base_answer(entry)

    @staticmethod
    def _knowledge_base_answer(entry):
        return {
            'answer': entry['answer'],
            'sources': copy.deepcopy(entry['sources']),
            'confidence': entry['confidence'],
            'tokens_used': entry['tokens_used'],
            'topic': entry['topic']
        }

    def _generate_answer(self, message, entry, history):
        prompt = f"""
        You are Salyte Beacon, an assistant for water safety and water quality questions.
        Answer in plain language, in at most 150 words. Follow WHO drinking water guidance.
        If the question is not about water, politely steer back to water safety.

        Reference information:
        {entry['answer']}

        Recent conversation:
        {history or 'None'}

        Question: {message}

        Answer:
        """

        response = self.model.generate_content(prompt)
        text = response.text.strip()
        if not text:
            raise ValueError('Empty model response')

        usage = getattr(response, 'usage_metadata', None)
        tokens_used = getattr(usage, 'total_token_count', None) or entry['tokens_used']

        return {
            'answer': text,
            'sources': copy.deepcopy(entry['sources']),
            'confidence': entry['confidence'],
            'tokens_used': tokens_used,
            'topic': entry['topic']
        }
